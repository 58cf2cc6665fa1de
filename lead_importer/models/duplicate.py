from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Duplicate detection models.

StoredIdentity is one entry of the identity snapshot taken from the lead
store; DuplicateCandidate is what the detector reports for a matching row.
"""

__all__ = [
    "DuplicateScope",
    "DuplicateCandidate",
    "IdentityCandidate",
    "StoredIdentity",
    "MATCH_CHANNELS",
]

# Order used whenever matching fields are serialized
MATCH_CHANNELS = ("email", "phone")


class DuplicateScope(Enum):
    """Where the canonical original of a duplicate lives.

    - STORE: a lead that existed before this import
    - BATCH: an earlier row of the same file
    """
    STORE = "store"
    BATCH = "batch"


@dataclass(frozen=True)
class StoredIdentity:
    id: Any
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class IdentityCandidate:
    """Identifying attributes of one incoming row, keyed by its row index."""
    index: int
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class DuplicateCandidate:
    source_row_index: int | None
    matched_existing_id: Any
    matching_fields: frozenset[str]
    scope: DuplicateScope = DuplicateScope.STORE
    matched_row_index: int | None = None  # earlier row of the file (BATCH scope)

    @property
    def sorted_fields(self) -> list[str]:
        return [c for c in MATCH_CHANNELS if c in self.matching_fields]
