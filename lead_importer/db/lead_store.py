from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from psycopg2.extras import Json

from ..models.category import CategoryEntry
from ..models.duplicate import StoredIdentity
from ..models.team import StatusVocabulary, TeamMember
from .batch_insert import BatchInsertError, BatchMetrics, batch_insert

"""PostgreSQL-backed lead / formation type stores.

Tables follow the application schema: ``leads``, ``formation_types``,
``users`` and ``custom_statuses``, all scoped by ``team_id``.

Each ``insert_leads`` call is its own transaction (BEGIN ... COMMIT): a failed
chunk is rolled back on its own while chunks committed earlier stay in place.
The connection is expected to run in autocommit mode so the explicit
statements define the boundaries.
"""

__all__ = [
    "LEAD_COLUMNS",
    "LeadStore",
    "PostgresCategoryStore",
    "PostgresLeadStore",
]

logger = logging.getLogger(__name__)

LEAD_COLUMNS = [
    "team_id",
    "first_name",
    "last_name",
    "full_name",
    "email",
    "phone",
    "company_name",
    "job_title",
    "linkedin_url",
    "website",
    "city",
    "country",
    "sector",
    "company_size",
    "lead_type",
    "source_campaign",
    "product_interest",
    "notes",
    "status",
    "priority",
    "source",
    "assigned_to",
    "formation_type_id",
    "is_decision_maker",
    "ai_analyzed",
    "tags",
    "custom_fields",
]

_JSON_COLUMNS = {"custom_fields"}


class LeadStore(Protocol):
    """What the import pipeline needs from the lead store."""

    def fetch_identity_snapshot(self) -> list[StoredIdentity]:
        ...

    def find_by_email_or_phone(self, email: str | None, phone: str | None) -> StoredIdentity | None:
        ...

    def insert_leads(self, rows: Sequence[Mapping[str, Any]]) -> list[Any]:
        """Insert one chunk; return the new ids in submission order."""
        ...

    def mark_duplicate(self, lead_id: Any, original_id: Any, matching_fields: Sequence[str]) -> None:
        ...


class PostgresLeadStore:
    def __init__(
        self,
        cursor: Any,
        team_id: Any,
        *,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self.cursor = cursor
        self.team_id = team_id
        self.metrics_callback = metrics_callback

    def fetch_identity_snapshot(self) -> list[StoredIdentity]:
        self.cursor.execute(
            "SELECT id, email, phone FROM leads WHERE team_id = %s ORDER BY created_at, id",
            (self.team_id,),
        )
        return [StoredIdentity(id=r[0], email=r[1], phone=r[2]) for r in self.cursor.fetchall()]

    def find_by_email_or_phone(self, email: str | None, phone: str | None) -> StoredIdentity | None:
        conditions = []
        params: list[Any] = [self.team_id]
        if email:
            conditions.append("lower(trim(email)) = %s")
            params.append(email)
        if phone:
            # mirrors normalize_phone: digits only, '+' kept when it leads
            conditions.append(
                "(CASE WHEN trim(phone) LIKE '+%%' THEN '+' ELSE '' END"
                " || regexp_replace(phone, '[^0-9]', '', 'g')) = %s"
            )
            params.append(phone)
        if not conditions:
            return None
        self.cursor.execute(
            "SELECT id, email, phone FROM leads WHERE team_id = %s AND ("
            + " OR ".join(conditions)
            + ") ORDER BY created_at, id LIMIT 1",
            tuple(params),
        )
        row = self.cursor.fetchone()
        if row is None:
            return None
        return StoredIdentity(id=row[0], email=row[1], phone=row[2])

    def insert_leads(self, rows: Sequence[Mapping[str, Any]]) -> list[Any]:
        values = []
        for row in rows:
            full = {**row, "team_id": self.team_id}
            values.append(
                [Json(full.get(c)) if c in _JSON_COLUMNS else full.get(c) for c in LEAD_COLUMNS]
            )
        self.cursor.execute("BEGIN")
        try:
            result = batch_insert(
                self.cursor,
                table="leads",
                columns=LEAD_COLUMNS,
                rows=values,
                returning=["id"],
                page_size=len(values) or 1,
                metrics_callback=self.metrics_callback,
            )
            self.cursor.execute("COMMIT")
        except Exception as e:
            try:
                self.cursor.execute("ROLLBACK")
            except Exception as rollback_e:
                logger.error("rollback failed after insert error: %s", rollback_e)
            if isinstance(e, BatchInsertError):
                raise
            raise BatchInsertError(str(e)) from e
        return [r[0] for r in (result.returned_values or [])]

    def mark_duplicate(self, lead_id: Any, original_id: Any, matching_fields: Sequence[str]) -> None:
        self.cursor.execute(
            "UPDATE leads SET is_duplicate = true, duplicate_of = %s, "
            "duplicate_detected_at = now(), duplicate_fields = %s WHERE id = %s",
            (original_id, Json(list(matching_fields)), lead_id),
        )

    def list_team_members(self) -> list[TeamMember]:
        self.cursor.execute(
            "SELECT id, first_name, last_name FROM users WHERE team_id = %s ORDER BY created_at, id",
            (self.team_id,),
        )
        return [
            TeamMember(id=r[0], display_name=f"{r[1] or ''} {r[2] or ''}".strip())
            for r in self.cursor.fetchall()
        ]

    def load_status_vocabulary(self) -> StatusVocabulary:
        self.cursor.execute(
            "SELECT name FROM custom_statuses WHERE team_id = %s AND is_active ORDER BY order_position",
            (self.team_id,),
        )
        return StatusVocabulary(r[0] for r in self.cursor.fetchall())


class PostgresCategoryStore:
    """formation_types table as a category store."""

    def __init__(self, cursor: Any, team_id: Any) -> None:
        self.cursor = cursor
        self.team_id = team_id

    def list_categories(self) -> list[CategoryEntry]:
        self.cursor.execute(
            "SELECT id, name, color, order_position, is_active FROM formation_types "
            "WHERE team_id = %s ORDER BY order_position, created_at",
            (self.team_id,),
        )
        return [
            CategoryEntry(id=r[0], name=r[1], color_hex=r[2], order_position=r[3], is_active=r[4])
            for r in self.cursor.fetchall()
        ]

    def create_category(self, name: str, color_hex: str, order_position: int) -> CategoryEntry:
        self.cursor.execute(
            "INSERT INTO formation_types (team_id, name, color, order_position, is_active) "
            "VALUES (%s, %s, %s, %s, true) RETURNING id",
            (self.team_id, name, color_hex, order_position),
        )
        row = self.cursor.fetchone()
        return CategoryEntry(id=row[0], name=name, color_hex=color_hex, order_position=order_position)
