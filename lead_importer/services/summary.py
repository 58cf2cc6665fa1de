from __future__ import annotations

from ..models.import_result import ImportResult

"""SUMMARY line rendering for the lead import CLI.

Format:
SUMMARY rows={rows} accepted={accepted} inserted={inserted}
duplicates={duplicates} skipped={skipped} rejected={rejected}
errors={errors} elapsed_sec={elapsed}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for one import.

    Examples:
        >>> result = ImportResult(
        ...     inserted_count=9, duplicate_count=1, skipped_count=0,
        ...     total_rows=10, accepted_count=9, rejected_count=1, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY rows=10 accepted=9 inserted=9 duplicates=1 skipped=0 rejected=1 errors=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY rows={result.total_rows} "
        f"accepted={result.accepted_count} "
        f"inserted={result.inserted_count} "
        f"duplicates={result.duplicate_count} "
        f"skipped={result.skipped_count} "
        f"rejected={result.rejected_count} "
        f"errors={len(result.errors)} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
