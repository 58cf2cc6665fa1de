from __future__ import annotations

from lead_importer.models.error_record import ErrorRecord
from lead_importer.models.import_result import ImportResult
from lead_importer.services.summary import render_summary_line


def _result(**kwargs) -> ImportResult:
    base = dict(
        inserted_count=8,
        duplicate_count=2,
        skipped_count=1,
        total_rows=10,
        accepted_count=9,
        rejected_count=1,
        elapsed_seconds=1.5,
    )
    base.update(kwargs)
    return ImportResult(**base)


def test_render_summary_line_basic():
    assert render_summary_line(_result()) == (
        "SUMMARY rows=10 accepted=9 inserted=8 duplicates=2 skipped=1 rejected=1 errors=0 elapsed_sec=1.5"
    )


def test_render_summary_line_counts_errors():
    errors = [ErrorRecord.create("f.csv", 4, "DATABASE_INSERT_ERROR", "boom")]
    assert "errors=1 " in render_summary_line(_result(errors=errors))


def test_elapsed_formatting():
    assert render_summary_line(_result(elapsed_seconds=0)).endswith("elapsed_sec=0")
    assert render_summary_line(_result(elapsed_seconds=3.0)).endswith("elapsed_sec=3")
    assert render_summary_line(_result(elapsed_seconds=0.001234)).endswith("elapsed_sec=0.001234")
    assert render_summary_line(_result(elapsed_seconds=12.34567)).endswith("elapsed_sec=12.346")
    assert "e-" not in render_summary_line(_result(elapsed_seconds=0.0000012))
