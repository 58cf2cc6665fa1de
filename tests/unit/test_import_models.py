from __future__ import annotations

import dataclasses

import pytest

from lead_importer.models.config_models import AssignmentMode, AssignmentStrategy, ImportOptions, ImportOptionsError
from lead_importer.models.error_record import ErrorRecord
from lead_importer.models.import_result import BatchStatsAccumulator, ImportResult
from lead_importer.models.lead_record import CanonicalRecord
from lead_importer.models.raw_row import RawRow
from lead_importer.models.team import StatusVocabulary


def test_import_options_defaults():
    opts = ImportOptions()
    assert opts.chunk_size == 500
    assert opts.default_priority == "cold"
    assert opts.assignment.mode is AssignmentMode.ROUND_ROBIN
    assert opts.skip_duplicates is False


@pytest.mark.parametrize("kwargs", [{"chunk_size": 0}, {"default_priority": "medium"}])
def test_import_options_rejects_invalid(kwargs):
    with pytest.raises(ImportOptionsError):
        ImportOptions(**kwargs)


def test_assignment_strategy_parse():
    assert AssignmentStrategy.parse(None).mode is AssignmentMode.ROUND_ROBIN
    assert AssignmentStrategy.parse("none").mode is AssignmentMode.NONE
    fixed = AssignmentStrategy.parse("u-7")
    assert (fixed.mode, fixed.member_id) == (AssignmentMode.FIXED, "u-7")
    with pytest.raises(ImportOptionsError):
        AssignmentStrategy(AssignmentMode.FIXED)


def test_raw_row_is_read_only():
    row = RawRow(index=0, row_number=2, values={"Email": "a@x.com"})
    assert row.get("Email") == "a@x.com"
    assert row.get("Missing") == ""
    with pytest.raises(TypeError):
        row.values["Email"] = "b@x.com"  # type: ignore[index]
    with pytest.raises(dataclasses.FrozenInstanceError):
        row.index = 1  # type: ignore[misc]


def test_canonical_record_to_row_defaults():
    rec = CanonicalRecord(source_row_index=0, row_number=2, status="Opt-in", priority="warm", phone="0601")
    row = rec.to_row()
    assert rec.has_identity
    assert row["source"] == "import_csv"
    assert row["is_decision_maker"] is False and row["ai_analyzed"] is False
    assert row["tags"] == [] and row["custom_fields"] == {}
    assert row["assigned_to"] is None
    assert "team_id" not in row
    assert not CanonicalRecord(source_row_index=1, row_number=3, status="x", priority="cold").has_identity


def test_status_vocabulary():
    vocab = StatusVocabulary(["Opt-in", "Contacté", ""])
    assert len(vocab) == 2
    assert vocab.default == "Opt-in"
    assert vocab.resolve(" CONTACTÉ ") == "Contacté"
    assert "opt-in" in vocab
    assert vocab.resolve("Perdu") is None
    assert StatusVocabulary().default == "Opt-in"


def test_result_flags():
    err = ErrorRecord.create("f.csv", 4, "DATABASE_INSERT_ERROR", "boom")
    ok = ImportResult(inserted_count=3, duplicate_count=0, skipped_count=0)
    partial = ImportResult(inserted_count=2, duplicate_count=0, skipped_count=1, errors=[err])
    nothing = ImportResult(inserted_count=0, duplicate_count=0, skipped_count=3, errors=[err])
    assert ok.succeeded and not ok.partially_applied
    assert not partial.succeeded and partial.partially_applied
    assert not nothing.partially_applied


def test_batch_stats_accumulator():
    acc = BatchStatsAccumulator()
    assert acc.get_stats() == (0, 0.0, 0.0)
    acc.add_batch_time(0.5)
    assert acc.get_stats() == (1, 0.5, 0.5)
    for t in (1.0, 1.5, 2.0):
        acc.add_batch_time(t)
    total, avg, p95 = acc.get_stats()
    assert total == 4
    assert avg == pytest.approx(1.25)
    assert 1.5 < p95 <= 2.0
