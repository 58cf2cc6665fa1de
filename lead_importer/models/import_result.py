from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .category import CategoryEntry
from .duplicate import DuplicateCandidate
from .error_record import ErrorRecord

"""Import result models.

ImportResult is what ``LeadImportPipeline.submit`` returns to the caller. It
is never retained by the pipeline. A result with ``errors`` populated and
``inserted_count > 0`` describes a partially applied import: committed batches
are not rolled back.
"""


@dataclass(frozen=True)
class ImportResult:
    """Outcome of one import run.

    Invariant: ``inserted_count + skipped_count == accepted_count``.
    """
    inserted_count: int
    duplicate_count: int
    skipped_count: int
    errors: list[ErrorRecord] = field(default_factory=list)
    total_rows: int = 0  # parsed data rows
    accepted_count: int = 0  # rows carrying a name, email or phone
    rejected_count: int = 0  # rows without any identifying attribute
    marked_count: int = 0  # duplicates linked to their original after insert
    cancelled: bool = False
    duplicates: list[DuplicateCandidate] = field(default_factory=list)
    created_categories: list[CategoryEntry] = field(default_factory=list)
    inserted_ids: dict[int, Any] = field(default_factory=dict)  # source row index -> lead id
    start_time: datetime | None = None
    end_time: datetime | None = None
    elapsed_seconds: float = 0.0
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.errors and not self.cancelled

    @property
    def partially_applied(self) -> bool:
        return bool(self.errors) and self.inserted_count > 0


class BatchStatsAccumulator:
    """Accumulates per-batch commit timings for the result statistics."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 19th of 20 inclusive quantiles
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
