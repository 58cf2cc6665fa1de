from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..db.batch_insert import BatchInsertError
from ..db.lead_store import LeadStore
from ..models.config_models import DEFAULT_CHUNK_SIZE
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.import_result import BatchStatsAccumulator
from ..models.lead_record import CanonicalRecord
from .progress import ImportProgress

"""Chunked lead persistence.

Accepted records are split into fixed-size chunks committed sequentially in
input order. After each chunk the store-assigned ids are recorded against the
source row indices (same relative order as submitted) and progress advances
in the 50-100 range.

A chunk failure aborts the remaining chunks. Chunks committed before it are
not rolled back: the caller gets a partially applied import with counts and
an error record. A cancellation event is checked before every chunk.
"""

__all__ = [
    "BatchPersister",
    "PersistOutcome",
]

logger = logging.getLogger(__name__)


@dataclass
class PersistOutcome:
    inserted_ids: list[tuple[int, Any]] = field(default_factory=list)  # (source_row_index, lead id)
    committed_batches: int = 0
    total_batches: int = 0
    error: ErrorRecord | None = None
    cancelled: bool = False
    stats: BatchStatsAccumulator = field(default_factory=BatchStatsAccumulator)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)


class BatchPersister:
    def __init__(
        self,
        store: LeadStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        *,
        progress: ImportProgress | None = None,
        cancel_event: threading.Event | None = None,
        on_commit: Callable[[list[Any]], Any] | None = None,
        source_name: str = "<upload>",
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.store = store
        self.chunk_size = chunk_size
        self.progress = progress
        self.cancel_event = cancel_event
        self.on_commit = on_commit
        self.source_name = source_name

    def chunks(self, records: Sequence[CanonicalRecord]) -> list[Sequence[CanonicalRecord]]:
        return [records[i:i + self.chunk_size] for i in range(0, len(records), self.chunk_size)]

    def persist(self, records: Sequence[CanonicalRecord]) -> PersistOutcome:
        chunks = self.chunks(records)
        outcome = PersistOutcome(total_batches=len(chunks))
        total = len(records)

        for number, chunk in enumerate(chunks, start=1):
            if self.cancel_event is not None and self.cancel_event.is_set():
                outcome.cancelled = True
                outcome.error = ErrorRecord.create(
                    file=self.source_name,
                    row=FILE_LEVEL_ROW,
                    error_type="IMPORT_CANCELLED",
                    message=(
                        f"import cancelled before batch {number}/{len(chunks)}; "
                        f"{outcome.inserted_count} of {total} lead(s) committed"
                    ),
                )
                logger.warning("import cancelled before batch %d/%d", number, len(chunks))
                break

            first_row, last_row = chunk[0].row_number, chunk[-1].row_number
            started = time.perf_counter()
            try:
                ids = self.store.insert_leads([r.to_row() for r in chunk])
            except Exception as e:
                error_type = "DATABASE_INSERT_ERROR" if isinstance(e, BatchInsertError) else "UNEXPECTED_ERROR"
                outcome.error = ErrorRecord.create(
                    file=self.source_name,
                    row=first_row,
                    error_type=error_type,
                    message=f"batch {number}/{len(chunks)} (rows {first_row}-{last_row}) failed: {e}",
                )
                logger.error(
                    "batch %d/%d (rows %d-%d) failed, %d remaining batch(es) aborted: %s",
                    number,
                    len(chunks),
                    first_row,
                    last_row,
                    len(chunks) - number,
                    e,
                )
                break
            outcome.stats.add_batch_time(time.perf_counter() - started)

            if len(ids) != len(chunk):
                # committed, but ids can no longer be correlated with rows
                outcome.committed_batches += 1
                outcome.error = ErrorRecord.create(
                    file=self.source_name,
                    row=first_row,
                    error_type="ID_CORRELATION_ERROR",
                    message=(
                        f"batch {number}/{len(chunks)} returned {len(ids)} id(s) "
                        f"for {len(chunk)} lead(s); remaining batches aborted"
                    ),
                )
                logger.error("batch %d returned %d ids for %d leads", number, len(ids), len(chunk))
                break

            outcome.inserted_ids.extend(zip((r.source_row_index for r in chunk), ids, strict=True))
            outcome.committed_batches += 1
            logger.debug("batch %d/%d committed (%d leads)", number, len(chunks), len(chunk))
            if self.progress is not None:
                self.progress.persistence(outcome.inserted_count, total)
            if self.on_commit is not None:
                self.on_commit(list(ids))

        return outcome
