from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..db.lead_store import LeadStore
from ..logging.error_log import ErrorLogBuffer
from ..models.duplicate import DuplicateCandidate, DuplicateScope
from ..models.error_record import ErrorRecord

"""Post-insert duplicate linking.

Runs after persistence. Each detected duplicate whose row was committed is
marked against its canonical original: the stored lead for STORE matches, the
lead inserted for the earlier row for BATCH matches. Rows that never got an id
(failed / cancelled chunk, skipped) are left alone.

Marking is best effort. A failure is logged and buffered in the error log but
does not change the import outcome.
"""

__all__ = [
    "MarkingOutcome",
    "mark_duplicates",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkingOutcome:
    marked: int = 0
    failed: int = 0
    skipped: int = 0  # not inserted, or original unresolved


def _original_id(candidate: DuplicateCandidate, inserted_ids: Mapping[int, Any]) -> Any:
    if candidate.scope is DuplicateScope.STORE:
        return candidate.matched_existing_id
    if candidate.matched_row_index is None:
        return None
    return inserted_ids.get(candidate.matched_row_index)


def mark_duplicates(
    store: LeadStore,
    candidates: Iterable[DuplicateCandidate],
    inserted_ids: Mapping[int, Any],
    error_log: ErrorLogBuffer | None = None,
    *,
    source_name: str = "<upload>",
    row_numbers: Mapping[int, int] | None = None,
) -> MarkingOutcome:
    marked = failed = skipped = 0
    for cand in candidates:
        if cand.source_row_index is None:
            skipped += 1
            continue
        lead_id = inserted_ids.get(cand.source_row_index)
        if lead_id is None:
            skipped += 1
            continue
        original_id = _original_id(cand, inserted_ids)
        if original_id is None:
            logger.info(
                "duplicate at row index %d not linked: original row %s was not inserted",
                cand.source_row_index,
                cand.matched_row_index,
            )
            skipped += 1
            continue
        try:
            store.mark_duplicate(lead_id, original_id, cand.sorted_fields)
        except Exception as e:
            failed += 1
            logger.warning("marking lead %s as duplicate of %s failed: %s", lead_id, original_id, e)
            if error_log is not None:
                row = (row_numbers or {}).get(cand.source_row_index, -1)
                error_log.append(
                    ErrorRecord.create(
                        file=source_name,
                        row=row,
                        error_type="DUPLICATE_MARK_ERROR",
                        message=f"lead {lead_id} -> {original_id}: {e}",
                    )
                )
            continue
        marked += 1
    return MarkingOutcome(marked=marked, failed=failed, skipped=skipped)
