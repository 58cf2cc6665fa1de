from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

"""Post-commit hooks (AI scoring / enrichment triggers).

Hooks receive the ids of the leads committed by one batch. They run on a
small background executor: the pipeline submits them and moves on without
waiting, and a failing hook is logged without touching the import result.
"""

__all__ = [
    "PostCommitHook",
    "PostCommitHooks",
]

logger = logging.getLogger(__name__)

PostCommitHook = Callable[[Sequence[Any]], None]


class PostCommitHooks:
    def __init__(self, hooks: Sequence[PostCommitHook] = (), *, max_workers: int = 2) -> None:
        self.hooks: list[PostCommitHook] = list(hooks)
        self.max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    def __bool__(self) -> bool:
        return bool(self.hooks)

    def dispatch(self, lead_ids: Sequence[Any]) -> list[Future[None]]:
        """Schedule every hook for ``lead_ids``; returns the futures, never waits."""
        if not self.hooks or not lead_ids:
            return []
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="post-commit"
            )
        ids = tuple(lead_ids)
        return [self._executor.submit(_run_isolated, hook, ids) for hook in self.hooks]

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def _run_isolated(hook: PostCommitHook, lead_ids: tuple[Any, ...]) -> None:
    try:
        hook(lead_ids)
    except Exception:
        name = getattr(hook, "__name__", repr(hook))
        logger.warning("post-commit hook %s failed for %d lead(s)", name, len(lead_ids), exc_info=True)
