from __future__ import annotations

import time

import numpy as np
import pytest

from lead_importer.logging.error_log import ErrorLogBuffer
from lead_importer.mapping.field_mapper import infer_mapping
from lead_importer.models.config_models import ImportOptions
from lead_importer.models.raw_row import RawRow
from lead_importer.models.team import StatusVocabulary, TeamMember
from lead_importer.services.orchestrator import LeadImportPipeline

"""Performance test: whole-pipeline throughput budget.

Runs 20k synthetic rows through LeadImportPipeline with the in-memory store
(chunk size 500) and checks:
- elapsed <= 30 seconds
- throughput >= 800 rows/sec
- counts stay consistent (inserted + skipped == accepted)
"""

HEADERS = ["Prénom", "Nom", "Email", "Téléphone", "Priorité"]


def generate_rows(rows: int = 20_000, dup_ratio: float = 0.1, seed: int = 42) -> list[RawRow]:
    rng = np.random.default_rng(seed)
    firsts = rng.choice(["Jean", "Marie", "Paul", "Lucie", "Karim"], rows)
    priorities = rng.choice(["cold", "warm", "hot", ""], rows)
    dup_of = np.where(rng.random(rows) < dup_ratio, rng.integers(0, rows, rows), -1)
    out = []
    for i in range(rows):
        n = int(dup_of[i]) if 0 <= dup_of[i] < i else i
        values = {
            "Prénom": str(firsts[i]),
            "Nom": f"Nom{i}",
            "Email": f"lead{n}@example.com",
            "Téléphone": f"06{i:08d}",
            "Priorité": str(priorities[i]),
        }
        out.append(RawRow(index=i, row_number=i + 2, values=values))
    return out


@pytest.mark.perf
def test_pipeline_throughput_budget(lead_store, tmp_path):
    rows = generate_rows()
    pipeline = LeadImportPipeline(
        lead_store,
        [TeamMember(id=f"u{i}") for i in range(5)],
        StatusVocabulary(["Opt-in"]),
        error_log=ErrorLogBuffer(logs_dir=tmp_path),
    )

    start = time.perf_counter()
    result = pipeline.submit(rows, infer_mapping(HEADERS), ImportOptions(chunk_size=500, skip_duplicates=True))
    elapsed = time.perf_counter() - start

    assert result.succeeded
    assert result.accepted_count == len(rows)
    assert result.inserted_count + result.skipped_count == result.accepted_count
    assert result.skipped_count == result.duplicate_count > 0
    assert result.total_batches == lead_store.insert_calls
    assert max(lead_store.chunk_sizes) == 500

    throughput = len(rows) / max(elapsed, 1e-9)
    print(f"\npipeline: {len(rows):,} rows in {elapsed:.3f}s ({throughput:,.0f} rows/sec)")
    assert elapsed <= 30.0
    assert throughput >= 800
