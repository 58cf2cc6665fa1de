from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

"""Team roster and status vocabulary consumed by the import pipeline."""

__all__ = [
    "TeamMember",
    "StatusVocabulary",
    "FALLBACK_STATUS",
]

FALLBACK_STATUS = "Opt-in"


@dataclass(frozen=True)
class TeamMember:
    id: Any
    display_name: str = ""


class StatusVocabulary:
    """Ordered set of allowed status labels, matched case-insensitively."""

    def __init__(self, labels: Iterable[str] = ()) -> None:
        self.labels: tuple[str, ...] = tuple(label for label in labels if label)
        self._index = {label.strip().casefold(): label for label in self.labels}

    def __len__(self) -> int:
        return len(self.labels)

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and self.resolve(value) is not None

    @property
    def default(self) -> str:
        return self.labels[0] if self.labels else FALLBACK_STATUS

    def resolve(self, value: str | None) -> str | None:
        """Return the vocabulary spelling of ``value`` or None if unknown."""
        if not value:
            return None
        return self._index.get(value.strip().casefold())
