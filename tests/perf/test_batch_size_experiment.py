from __future__ import annotations

import os
import time

import pytest

from lead_importer.db.lead_store import PostgresLeadStore
from lead_importer.models.lead_record import CanonicalRecord
from lead_importer.services.persister import BatchPersister

"""Performance test: chunk size experiment harness.

Persists 10k records through PostgresLeadStore with chunk sizes 250 / 500 /
1000 / 2000 and prints the metrics (not asserted) for tuning the default
chunk size. execute_values is simulated with a per-call overhead plus a
per-row cost. Skipped by default; set RUN_BATCH_EXPERIMENT=1 to run it.
"""


class MockCursor:
    def __init__(self) -> None:
        self.statements: list[str] = []

    def execute(self, sql, params=None):
        self.statements.append(sql)


@pytest.fixture
def mock_execute_values_with_timing(monkeypatch):
    import lead_importer.db.batch_insert as bi

    counter = iter(range(1, 10_000_000))

    def fake_execute_values(cursor, sql, rows, page_size=1000, fetch=False):
        time.sleep(0.001 + 0.00005 * len(rows))  # round trip + per-row cost
        return [(next(counter),) for _ in rows]

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)


@pytest.mark.skipif(
    not os.environ.get("RUN_BATCH_EXPERIMENT", False),
    reason="Chunk size experiment - developer opt-in only (set RUN_BATCH_EXPERIMENT=1)",
)
def test_chunk_size_experiment(mock_execute_values_with_timing):
    records = [
        CanonicalRecord(source_row_index=i, row_number=i + 2, status="Opt-in", priority="cold", email=f"u{i}@x.com")
        for i in range(10_000)
    ]

    print("\n=== Chunk Size Experiment ===")
    results = []
    for chunk_size in (250, 500, 1000, 2000):
        cursor = MockCursor()
        persister = BatchPersister(PostgresLeadStore(cursor, team_id="perf"), chunk_size)
        start = time.perf_counter()
        outcome = persister.persist(records)
        elapsed = time.perf_counter() - start
        total, avg, p95 = outcome.stats.get_stats()
        results.append((chunk_size, elapsed))
        print(
            f"chunk={chunk_size:>5} elapsed={elapsed:.3f}s throughput={len(records) / elapsed:,.0f} rows/s "
            f"batches={total} avg={avg * 1000:.1f}ms p95={p95 * 1000:.1f}ms "
            f"statements={len(cursor.statements)}"
        )
        assert outcome.inserted_count == len(records)

    best = min(results, key=lambda r: r[1])
    print(f"Fastest chunk size: {best[0]} ({best[1]:.3f}s)")
