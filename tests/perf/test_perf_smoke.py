from __future__ import annotations

import time

from lead_importer.dedup.detector import check_batch
from lead_importer.models.duplicate import IdentityCandidate, StoredIdentity

"""Performance smoke test: duplicate detection stays linear.

10k candidates against a 10k snapshot must finish well under a second on CI;
a quadratic scan would take minutes.
"""


def test_check_batch_10k_against_10k_snapshot():
    snapshot = [StoredIdentity(id=i, email=f"old{i}@example.com", phone=f"+3361{i:07d}") for i in range(10_000)]
    candidates = [
        IdentityCandidate(
            index=i,
            # every 10th row hits the store, every 7th repeats an earlier row
            email=f"OLD{i}@example.com" if i % 10 == 0 else f"new{i - i % 7}@example.com",
            phone=None,
        )
        for i in range(10_000)
    ]

    start = time.perf_counter()
    result = check_batch(snapshot, candidates)
    elapsed = time.perf_counter() - start

    assert elapsed < 2.0, f"check_batch too slow: {elapsed:.3f}s"
    assert result[0].matched_existing_id == 0
    assert 1 not in result
    assert result[2].matched_row_index == 1
    assert all(d.matched_row_index is None or d.matched_row_index < d.source_row_index for d in result.values())
    throughput = len(candidates) / max(elapsed, 1e-9)
    assert throughput > 5_000  # extremely lenient
