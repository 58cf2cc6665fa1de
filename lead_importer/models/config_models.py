from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .lead_record import PRIORITIES

"""Config dataclasses for the lead import pipeline.

ImportOptions holds the per-run choices the caller makes before committing an
import (assignment, defaults, duplicate handling, batching). DatabaseConfig is
the fallback connection configuration read from config/import.yml.
"""

DEFAULT_CHUNK_SIZE = 500


class ImportOptionsError(ValueError):
    """Raised when ImportOptions are inconsistent."""


class AssignmentMode(Enum):
    """How imported leads get an owner.

    - NONE: leads stay unassigned
    - FIXED: every accepted lead goes to one member
    - ROUND_ROBIN: accepted leads rotate over the team roster
    """
    NONE = "none"
    FIXED = "fixed"
    ROUND_ROBIN = "round_robin"


@dataclass(frozen=True)
class AssignmentStrategy:
    mode: AssignmentMode = AssignmentMode.ROUND_ROBIN
    member_id: Any = None  # required for FIXED

    def __post_init__(self) -> None:
        if self.mode is AssignmentMode.FIXED and self.member_id in (None, ""):
            raise ImportOptionsError("fixed assignment requires a member id")

    @classmethod
    def parse(cls, value: str | None) -> AssignmentStrategy:
        """Build a strategy from ``round_robin`` / ``none`` / a member id."""
        if value is None or value == AssignmentMode.ROUND_ROBIN.value:
            return cls(AssignmentMode.ROUND_ROBIN)
        if value == AssignmentMode.NONE.value:
            return cls(AssignmentMode.NONE)
        return cls(AssignmentMode.FIXED, member_id=value)


@dataclass(frozen=True)
class ImportOptions:
    """Per-run import settings."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    skip_duplicates: bool = False  # drop detected duplicates instead of inserting + marking
    create_missing_categories: bool = False
    assignment: AssignmentStrategy = field(default_factory=AssignmentStrategy)
    default_status: str | None = None  # None -> first label of the status vocabulary
    default_priority: str = "cold"

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ImportOptionsError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.default_priority not in PRIORITIES:
            raise ImportOptionsError(
                f"default_priority must be one of {list(PRIORITIES)}, got {self.default_priority!r}"
            )


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None
    port: int | None
    user: str | None
    password: str | None
    database: str | None
    dsn: str | None
