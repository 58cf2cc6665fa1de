from __future__ import annotations

import io
import logging
import re
from pathlib import Path

import pandas as pd

from ..models.raw_row import ParsedFile, RawRow

"""CSV reader for lead import files.

- UTF-8 (BOM tolerated), comma separated, first non-blank line is the header.
- Every cell is read as a string (no NA / dtype inference) and stripped.
- Fully empty lines and rows whose cells are all blank are skipped.
- Rows with more fields than the header abort the parse, trailing empty
  fields included; rows with fewer fields are padded with empty strings and
  reported with a WARN line.
- Header names must be unique once stripped.

Parsing is a pure transform: nothing is written anywhere.
"""

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(r"line (\d+)")
_UNNAMED_PREFIX = "Unnamed: "


class ParseError(Exception):
    """Raised when an uploaded file cannot be turned into headers + rows.

    ``line`` is the 1-based physical line of the first offending input line
    when it is known.
    """

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


def read_csv_file(path: Path) -> ParsedFile:
    """Read a CSV file from disk (see read_csv_bytes)."""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ParseError(f"cannot read {path}: {e}") from e
    return read_csv_bytes(data, source_name=path.name)


def read_csv_bytes(data: bytes, source_name: str = "<upload>") -> ParsedFile:
    """Parse raw upload bytes into (headers, rows)."""
    df, header_line = read_csv_frame(data, source_name)
    return normalize_frame(df, source_name, header_line=header_line)


def _decode(data: bytes, source_name: str) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        line = data[: e.start].count(b"\n") + 1
        raise ParseError(
            f"{source_name}: file is not valid UTF-8 (line {line}, byte {e.start})", line=line
        ) from e


def read_csv_frame(data: bytes, source_name: str = "<upload>") -> tuple[pd.DataFrame, int]:
    """Read the upload into a raw all-string DataFrame.

    The header row is read as data (``header=None``) and turned into column
    names here, so pandas neither guesses an index column from rows one field
    longer than the header (trailing delimiters) nor renames repeated headers.
    Any row longer than the header is a tokenizer error and raises ParseError.

    Returns the frame and the physical line number of the header row.
    """
    text = _decode(data, source_name)

    # Header = first non-blank line
    lines = text.splitlines(keepends=True)
    skipped = 0
    while skipped < len(lines) and not lines[skipped].strip():
        skipped += 1
    if skipped == len(lines):
        raise ParseError(f"{source_name}: file is empty, a header row is required", line=1)
    header_line = skipped + 1
    body = "".join(lines[skipped:])

    try:
        raw = pd.read_csv(
            io.StringIO(body),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except pd.errors.EmptyDataError as e:
        raise ParseError(f"{source_name}: no header row found", line=header_line) from e
    except pd.errors.ParserError as e:
        line = None
        m = _LINE_RE.search(str(e))
        if m:
            line = int(m.group(1)) + skipped
        raise ParseError(
            f"{source_name}: malformed row at line {line if line is not None else '?'}: {e}",
            line=line,
        ) from e

    columns = _header_names(raw.iloc[0].tolist(), source_name, header_line)
    df = raw.iloc[1:].reset_index(drop=True)
    df.columns = columns
    return df, header_line


def _header_names(cells: list[object], source_name: str, header_line: int) -> list[str]:
    """Stripped header names; blank cells get a positional placeholder name."""
    names = ["" if pd.isna(c) else str(c).strip() for c in cells]
    if not any(names):
        raise ParseError(f"{source_name}: header row is empty", line=header_line)
    seen: dict[str, int] = {}
    for pos, name in enumerate(names, start=1):
        if not name:
            continue
        if name in seen:
            raise ParseError(
                f"{source_name}: duplicate column header {name!r} (columns {seen[name]} and {pos})",
                line=header_line,
            )
        seen[name] = pos
    return [name or f"{_UNNAMED_PREFIX}{pos}" for pos, name in enumerate(names)]


def normalize_frame(df: pd.DataFrame, source_name: str = "<upload>", header_line: int = 1) -> ParsedFile:
    """Turn a raw frame into RawRows.

    Row numbers are physical lines assuming one record per line (quoted values
    spanning several lines shift later numbers).
    """
    headers = list(df.columns)
    rows: list[RawRow] = []
    short_rows = 0
    for pos, raw in enumerate(df.itertuples(index=False, name=None)):
        row_number = header_line + pos + 1
        values: dict[str, str] = {}
        missing = 0
        for col, val in zip(headers, raw, strict=False):
            if pd.isna(val):
                missing += 1
                values[col] = ""
            else:
                values[col] = str(val).strip()
        if not any(values.values()):
            continue
        if missing:
            short_rows += 1
            logger.warning(
                "%s: line %d has %d field(s) fewer than the header; padded with empty values",
                source_name,
                row_number,
                missing,
            )
        rows.append(RawRow(index=len(rows), row_number=row_number, values=values))

    return ParsedFile(source_name=source_name, headers=headers, rows=rows, short_rows=short_rows)
