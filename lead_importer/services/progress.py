from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Import progress reporting (callback + tqdm on TTY only).

Progress is a single integer 0-100 for the whole run:
- 0-50: validation / mapping phase (row projection)
- 50-100: persistence phase (committed batches)

Values are monotonic and the callback only fires when the integer changes.
In non-TTY environments (CI) the tqdm bar is disabled to avoid ANSI control
sequence spam; the callback still fires.
"""

__all__ = [
    "ImportProgress",
    "ProgressCallback",
    "is_tty_enabled",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

VALIDATION_END = 50


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and the bar should be displayed."""
    return sys.stdout.isatty()


class ImportProgress:
    def __init__(
        self,
        callback: ProgressCallback | None = None,
        *,
        description: str = "Importing leads",
    ) -> None:
        self.callback = callback
        self.description = description
        self.percent = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=100,
                desc=description,
                unit="%",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def report(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        if percent <= self.percent:
            return
        delta = percent - self.percent
        self.percent = percent
        if self.enabled and self.pbar is not None:
            self.pbar.update(delta)
        if self.callback is not None:
            try:
                self.callback(percent)
            except Exception:
                logger.warning("progress callback failed at %d%%", percent, exc_info=True)

    def validation(self, done: int, total: int) -> None:
        """Row projection progress, mapped to 0-50."""
        if total <= 0:
            self.report(VALIDATION_END)
            return
        self.report(done * VALIDATION_END // total)

    def persistence(self, done: int, total: int) -> None:
        """Committed records out of the records to persist, mapped to 50-100."""
        if total <= 0:
            self.report(100)
            return
        self.report(VALIDATION_END + done * (100 - VALIDATION_END) // total)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ImportProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
