from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

"""RawRow / ParsedFile models for the lead import pipeline.

A RawRow is one data line of the uploaded file exactly as parsed: header -> raw
string. Rows are immutable once parsed and only live for one import call.
"""

__all__ = [
    "RawRow",
    "ParsedFile",
]


@dataclass(frozen=True)
class RawRow:
    """One parsed data row.

    ``index`` is the 0-based position in ``ParsedFile.rows`` and is the
    back-reference every CanonicalRecord / DuplicateCandidate carries.
    ``row_number`` is the 1-based row in the file (header row = 1), used for
    error reporting only.
    """
    index: int
    row_number: int
    values: Mapping[str, str]

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, header: str) -> str:
        return self.values.get(header, "")


@dataclass(frozen=True)
class ParsedFile:
    """Output of the tabular parser: ordered headers and the data rows."""
    source_name: str
    headers: list[str]
    rows: list[RawRow]
    short_rows: int = 0  # rows padded because they had fewer fields than the header

    @property
    def row_count(self) -> int:
        return len(self.rows)
