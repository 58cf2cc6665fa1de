# Shared pytest fixtures: work dir, config YAML, in-memory lead / category stores
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import pytest

from lead_importer.db.batch_insert import BatchInsertError
from lead_importer.dedup.detector import normalize_phone
from lead_importer.models.category import CategoryEntry
from lead_importer.models.duplicate import StoredIdentity
from lead_importer.models.raw_row import RawRow


class FakeLeadStore:
    """In-memory lead store.

    ``fail_on_chunk`` makes the n-th insert_leads call (1-based) raise the way
    PostgresLeadStore does after a rollback.
    """

    def __init__(
        self,
        existing: list[StoredIdentity] | None = None,
        fail_on_chunk: int | None = None,
        fail_mark: bool = False,
        fail_snapshot: bool = False,
        first_id: int = 1000,
    ) -> None:
        self.existing = list(existing or [])
        self.fail_on_chunk = fail_on_chunk
        self.fail_mark = fail_mark
        self.fail_snapshot = fail_snapshot
        self.next_id = first_id
        self.leads: dict[int, dict[str, Any]] = {}
        self.insert_calls = 0
        self.chunk_sizes: list[int] = []
        self.snapshot_calls = 0
        self.marks: list[tuple[Any, Any, list[str]]] = []

    def fetch_identity_snapshot(self) -> list[StoredIdentity]:
        self.snapshot_calls += 1
        if self.fail_snapshot:
            raise RuntimeError("connection reset by peer")
        return list(self.existing)

    def find_by_email_or_phone(self, email: str | None, phone: str | None) -> StoredIdentity | None:
        for identity in self.existing:
            if email and identity.email and identity.email.strip().lower() == email:
                return identity
            if phone and identity.phone and normalize_phone(identity.phone) == phone:
                return identity
        return None

    def insert_leads(self, rows: list[dict[str, Any]]) -> list[int]:
        self.insert_calls += 1
        if self.fail_on_chunk == self.insert_calls:
            raise BatchInsertError("server closed the connection unexpectedly")
        self.chunk_sizes.append(len(rows))
        ids = []
        for row in rows:
            lead_id = self.next_id
            self.next_id += 1
            self.leads[lead_id] = dict(row)
            ids.append(lead_id)
        return ids

    def mark_duplicate(self, lead_id: Any, original_id: Any, matching_fields: list[str]) -> None:
        if self.fail_mark:
            raise RuntimeError("update timed out")
        self.marks.append((lead_id, original_id, list(matching_fields)))
        self.leads[lead_id].update(
            is_duplicate=True, duplicate_of=original_id, duplicate_fields=list(matching_fields)
        )


class FakeCategoryStore:
    def __init__(self, entries: list[CategoryEntry] | None = None, fail_names: set[str] | None = None) -> None:
        self.entries = list(entries or [])
        self.fail_names = fail_names or set()
        self.created: list[CategoryEntry] = []
        self._next = 500

    def list_categories(self) -> list[CategoryEntry]:
        return list(self.entries)

    def create_category(self, name: str, color_hex: str, order_position: int) -> CategoryEntry:
        if name in self.fail_names:
            raise RuntimeError(f"permission denied for {name}")
        entry = CategoryEntry(id=self._next, name=name, color_hex=color_hex, order_position=order_position)
        self._next += 1
        self.entries.append(entry)
        self.created.append(entry)
        return entry


def _make_rows(headers: list[str], data: list[list[str]]) -> list[RawRow]:
    """RawRows as the parser would build them (header on line 1)."""
    return [
        RawRow(index=i, row_number=i + 2, values=dict(zip(headers, values, strict=True)))
        for i, values in enumerate(data)
    ]


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """team_id: team-1
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
import:
  chunk_size: 2
  assignment: round_robin
  default_priority: warm
column_overrides:
  Portable: phone
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def lead_store() -> FakeLeadStore:
    return FakeLeadStore()


@pytest.fixture()
def make_store():
    return FakeLeadStore


@pytest.fixture()
def category_store() -> FakeCategoryStore:
    return FakeCategoryStore(
        [CategoryEntry(id=1, name="Excel Avancé", color_hex="#3B82F6", order_position=0)]
    )


@pytest.fixture()
def make_category_store():
    return FakeCategoryStore


@pytest.fixture()
def make_rows():
    return _make_rows
