from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..db.lead_store import LeadStore
from ..dedup.detector import check_batch
from ..logging.error_log import ErrorLogBuffer
from ..mapping.field_mapper import FieldMapping, infer_mapping, validate_mapping
from ..models.config_models import ImportOptions, ImportOptionsError
from ..models.duplicate import DuplicateCandidate, IdentityCandidate
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.import_result import ImportResult
from ..models.lead_record import PRIORITIES, CanonicalRecord
from ..models.raw_row import ParsedFile, RawRow
from ..models.team import StatusVocabulary, TeamMember
from ..parsing.reader import read_csv_bytes
from .assignment import AssignmentDistributor
from .categories import CategoryResolution, CategoryResolver, CategoryStore
from .duplicate_marker import mark_duplicates
from .hooks import PostCommitHook, PostCommitHooks
from .persister import BatchPersister
from .progress import ImportProgress, ProgressCallback

logger = logging.getLogger(__name__)

"""Lead import orchestration.

``LeadImportPipeline.submit`` runs one import as a single sequential flow:

1. validate the mapping (MappingError before anything is read from the store)
2. project every RawRow through the mapping, reject rows without a name,
   email or phone (progress 0-50)
3. one identity snapshot -> duplicate detection for the whole file
4. formation type resolution (optional creation of missing entries)
5. per-record transform: defaults, status/priority vocabulary, owner
6. chunked persistence (progress 50-100), post-commit hooks per chunk
7. duplicate marking unless duplicates are skipped
8. error log flush, ImportResult

Everything mutable for one run (assignment counter, detection result, id
correlation, collected errors) lives on the ImportRun context; the pipeline
object itself only holds collaborators and can serve several runs.
"""

__all__ = [
    "ImportRun",
    "LeadImportPipeline",
]

_LEAD_TYPES = {"B2B", "B2C"}


@dataclass
class ImportRun:
    """State of one import run, passed through every stage."""
    source_name: str
    options: ImportOptions
    default_status: str
    distributor: AssignmentDistributor
    progress: ImportProgress
    error_log: ErrorLogBuffer
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    total_rows: int = 0
    accepted: list[tuple[RawRow, dict[str, str]]] = field(default_factory=list)
    rejected_count: int = 0
    duplicates: dict[int, DuplicateCandidate] = field(default_factory=dict)
    categories: CategoryResolution | None = None
    records: list[CanonicalRecord] = field(default_factory=list)
    skipped_duplicates: int = 0
    inserted_ids: dict[int, Any] = field(default_factory=dict)
    batch_stats: tuple[int, float, float] = (0, 0.0, 0.0)
    marked_count: int = 0
    cancelled: bool = False
    errors: list[ErrorRecord] = field(default_factory=list)

    def record_error(self, row: int, error_type: str, message: str) -> ErrorRecord:
        record = ErrorRecord.create(file=self.source_name, row=row, error_type=error_type, message=message)
        self.add_error(record)
        return record

    def add_error(self, record: ErrorRecord) -> None:
        self.errors.append(record)
        self.error_log.append(record)


class LeadImportPipeline:
    """Bulk lead import against one team's lead store.

    Args:
        store: lead store (identity snapshot, chunk inserts, duplicate marking)
        roster: ordered team members used for round-robin assignment
        statuses: allowed status labels; the first one is the default status
        category_store: formation type store; None disables category lookup
        hooks: post-commit callables receiving the ids of each committed chunk
        progress_callback: receives an integer 0-100 when progress changes
        cancel_event: when set, persistence stops before the next chunk
        error_log: JSON Lines buffer shared with the caller (CLI); a fresh
            buffer is used per run otherwise
    """

    def __init__(
        self,
        store: LeadStore,
        roster: Sequence[TeamMember] = (),
        statuses: StatusVocabulary | None = None,
        *,
        category_store: CategoryStore | None = None,
        hooks: Sequence[PostCommitHook] = (),
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.store = store
        self.roster: tuple[TeamMember, ...] = tuple(roster)
        self.statuses = statuses if statuses is not None else StatusVocabulary()
        self.category_store = category_store
        self.hooks = PostCommitHooks(hooks)
        self.progress_callback = progress_callback
        self.cancel_event = cancel_event
        self.error_log = error_log

    # -- steps callers use before committing --------------------------------

    def parse(self, data: bytes, source_name: str = "<upload>") -> ParsedFile:
        return read_csv_bytes(data, source_name=source_name)

    def infer_mapping(self, parsed: ParsedFile, overrides: Mapping[str, str] | None = None) -> FieldMapping:
        return infer_mapping(parsed.headers, overrides)

    def import_bytes(
        self,
        data: bytes,
        options: ImportOptions | None = None,
        overrides: Mapping[str, str] | None = None,
        source_name: str = "<upload>",
    ) -> ImportResult:
        """Parse, infer the mapping (plus overrides) and submit in one call."""
        parsed = self.parse(data, source_name)
        mapping = self.infer_mapping(parsed, overrides)
        return self.submit(parsed.rows, mapping, options, source_name=source_name)

    # -- the import itself ---------------------------------------------------

    def submit(
        self,
        rows: Sequence[RawRow],
        mapping: FieldMapping,
        options: ImportOptions | None = None,
        *,
        source_name: str = "<upload>",
    ) -> ImportResult:
        """Import ``rows`` through ``mapping``.

        Raises:
            MappingError: no identifying field mapped (nothing persisted)
            ImportOptionsError: default status outside the status vocabulary

        Persistence failures do not raise: they come back in
        ``ImportResult.errors`` with the counts of what was committed.
        """
        validate_mapping(mapping)
        options = options or ImportOptions()
        default_status = self._default_status(options)

        with ImportProgress(self.progress_callback) as progress:
            run = ImportRun(
                source_name=source_name,
                options=options,
                default_status=default_status,
                distributor=AssignmentDistributor(options.assignment, self.roster),
                progress=progress,
                error_log=self.error_log if self.error_log is not None else ErrorLogBuffer(),
                total_rows=len(rows),
            )
            logger.info("importing %d row(s) from %s", len(rows), source_name)

            self._project_rows(run, rows, mapping)
            if run.accepted and self._detect_duplicates(run):
                self._resolve_categories(run, mapping)
                self._build_records(run)
                self._persist(run)
                if not options.skip_duplicates:
                    self._mark_duplicates(run)
            if not run.errors:
                progress.report(100)
            return self._finish(run)

    def close(self, wait: bool = True) -> None:
        """Shut the post-commit hook executor down."""
        self.hooks.shutdown(wait=wait)

    # -- stages --------------------------------------------------------------

    def _default_status(self, options: ImportOptions) -> str:
        if options.default_status is None:
            return self.statuses.default
        if not self.statuses:
            return options.default_status
        resolved = self.statuses.resolve(options.default_status)
        if resolved is None:
            raise ImportOptionsError(
                f"default status {options.default_status!r} is not one of {list(self.statuses.labels)}"
            )
        return resolved

    def _project_rows(self, run: ImportRun, rows: Sequence[RawRow], mapping: FieldMapping) -> None:
        total = len(rows)
        for pos, row in enumerate(rows, start=1):
            values = mapping.project(row.values)
            full_name = values.get("full_name") or _join_name(values.get("first_name"), values.get("last_name"))
            if full_name:
                values["full_name"] = full_name
            if full_name or values.get("email") or values.get("phone"):
                run.accepted.append((row, values))
            else:
                run.rejected_count += 1
                logger.debug("row %d has no name, email or phone; rejected", row.row_number)
            run.progress.validation(pos, total)
        run.progress.validation(total, total)
        if run.rejected_count:
            logger.warning("%d row(s) without name, email or phone were rejected", run.rejected_count)

    def _detect_duplicates(self, run: ImportRun) -> bool:
        """Flag duplicates against one store snapshot; False aborts the run."""
        try:
            snapshot = self.store.fetch_identity_snapshot()
        except Exception as e:
            logger.error("could not read existing leads for duplicate detection: %s", e)
            run.record_error(FILE_LEVEL_ROW, "SNAPSHOT_ERROR", f"identity snapshot failed: {e}")
            return False
        candidates = [
            IdentityCandidate(index=row.index, email=values.get("email"), phone=values.get("phone"))
            for row, values in run.accepted
        ]
        run.duplicates = check_batch(snapshot, candidates)
        if run.duplicates:
            logger.info(
                "%d duplicate(s) detected against %d stored lead(s)", len(run.duplicates), len(snapshot)
            )
        return True

    def _resolve_categories(self, run: ImportRun, mapping: FieldMapping) -> None:
        if self.category_store is None or "formation_type" not in mapping.mapped_fields():
            return
        names = [values.get("formation_type") for _, values in run.accepted]
        try:
            run.categories = CategoryResolver(self.category_store).resolve(
                names, create_missing=run.options.create_missing_categories
            )
        except Exception as e:
            logger.error("formation type lookup failed: %s", e)
            run.record_error(FILE_LEVEL_ROW, "CATEGORY_LOOKUP_ERROR", str(e))
            return
        for name, message in run.categories.failures:
            run.record_error(FILE_LEVEL_ROW, "CATEGORY_CREATE_ERROR", f"formation type {name!r}: {message}")

    def _build_records(self, run: ImportRun) -> None:
        for row, values in run.accepted:
            if run.options.skip_duplicates and row.index in run.duplicates:
                run.skipped_duplicates += 1
                continue
            run.records.append(self._to_record(run, row, values))
        if run.skipped_duplicates:
            logger.info("%d duplicate(s) skipped", run.skipped_duplicates)

    def _to_record(self, run: ImportRun, row: RawRow, values: dict[str, str]) -> CanonicalRecord:
        formation_type_id = None
        if run.categories is not None:
            formation_type_id = run.categories.id_for(values.get("formation_type"))
        return CanonicalRecord(
            source_row_index=row.index,
            row_number=row.row_number,
            status=self._status_for(values.get("status"), run.default_status),
            priority=_priority_for(values.get("priority"), run.options.default_priority),
            first_name=values.get("first_name"),
            last_name=values.get("last_name"),
            full_name=values.get("full_name"),
            email=values.get("email"),
            phone=values.get("phone"),
            company_name=values.get("company_name"),
            job_title=values.get("job_title"),
            linkedin_url=values.get("linkedin_url"),
            website=values.get("website"),
            city=values.get("city"),
            country=values.get("country"),
            sector=values.get("sector"),
            company_size=values.get("company_size"),
            lead_type=_lead_type_for(values.get("lead_type")),
            source_campaign=values.get("source_campaign"),
            product_interest=values.get("product_interest"),
            notes=values.get("notes"),
            assigned_to=run.distributor.next_owner(),
            formation_type_id=formation_type_id,
        )

    def _status_for(self, value: str | None, default: str) -> str:
        if not value:
            return default
        if not self.statuses:
            return value
        return self.statuses.resolve(value) or default

    def _persist(self, run: ImportRun) -> None:
        persister = BatchPersister(
            self.store,
            run.options.chunk_size,
            progress=run.progress,
            cancel_event=self.cancel_event,
            on_commit=self.hooks.dispatch if self.hooks else None,
            source_name=run.source_name,
        )
        outcome = persister.persist(run.records)
        run.inserted_ids = dict(outcome.inserted_ids)
        if outcome.error is not None:
            run.add_error(outcome.error)
        run.progress.set_postfix(inserted=outcome.inserted_count, batches=outcome.committed_batches)
        run.batch_stats = outcome.stats.get_stats()
        run.cancelled = outcome.cancelled

    def _mark_duplicates(self, run: ImportRun) -> None:
        if not run.duplicates or not run.inserted_ids:
            return
        marking = mark_duplicates(
            self.store,
            [run.duplicates[i] for i in sorted(run.duplicates)],
            run.inserted_ids,
            run.error_log,
            source_name=run.source_name,
            row_numbers={r.source_row_index: r.row_number for r in run.records},
        )
        run.marked_count = marking.marked
        if marking.failed:
            logger.warning("%d duplicate(s) could not be marked", marking.failed)

    def _finish(self, run: ImportRun) -> ImportResult:
        try:
            path = run.error_log.flush()
        except OSError as e:
            logger.warning("could not write error log: %s", e)
        else:
            if path is not None:
                logger.info("error log written to %s", path)

        end_time = datetime.now(UTC)
        total_batches, avg_batch, p95_batch = run.batch_stats
        inserted = len(run.inserted_ids)
        accepted = len(run.accepted)
        result = ImportResult(
            inserted_count=inserted,
            duplicate_count=len(run.duplicates),
            skipped_count=accepted - inserted,
            errors=list(run.errors),
            total_rows=run.total_rows,
            accepted_count=accepted,
            rejected_count=run.rejected_count,
            marked_count=run.marked_count,
            cancelled=run.cancelled,
            duplicates=[run.duplicates[i] for i in sorted(run.duplicates)],
            created_categories=list(run.categories.created) if run.categories is not None else [],
            inserted_ids=dict(run.inserted_ids),
            start_time=run.start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - run.start_time).total_seconds(),
            total_batches=total_batches,
            avg_batch_seconds=avg_batch,
            p95_batch_seconds=p95_batch,
        )
        if result.errors:
            logger.error(
                "import of %s finished with %d error(s): %d of %d accepted lead(s) inserted",
                run.source_name,
                len(result.errors),
                inserted,
                accepted,
            )
        else:
            logger.info("import of %s done: %d lead(s) inserted", run.source_name, inserted)
        return result


def _join_name(first: str | None, last: str | None) -> str | None:
    joined = " ".join(p for p in (first, last) if p)
    return joined or None


def _priority_for(value: str | None, default: str) -> str:
    if value and value.strip().lower() in PRIORITIES:
        return value.strip().lower()
    return default


def _lead_type_for(value: str | None) -> str | None:
    if value and value.strip().upper() in _LEAD_TYPES:
        return value.strip().upper()
    return None

