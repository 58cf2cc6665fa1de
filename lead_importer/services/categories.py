from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..models.category import CategoryEntry

"""Formation type (category dimension) resolution.

Leads reference formation types by id, files carry names. The resolver builds
a case-insensitive name -> id index over the existing entries and, only when
the caller enables it, creates one entry per distinct unseen name before the
rows are transformed. Colors cycle through CATEGORY_PALETTE and new entries
are appended after the existing order positions.
"""

__all__ = [
    "CATEGORY_PALETTE",
    "CategoryResolution",
    "CategoryResolver",
    "CategoryStore",
    "category_key",
]

logger = logging.getLogger(__name__)

CATEGORY_PALETTE = (
    "#3B82F6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#EC4899",
    "#14B8A6",
    "#F97316",
)


class CategoryStore(Protocol):
    def list_categories(self) -> list[CategoryEntry]:
        ...

    def create_category(self, name: str, color_hex: str, order_position: int) -> CategoryEntry:
        ...


def category_key(name: str) -> str:
    return " ".join(name.split()).casefold()


@dataclass
class CategoryResolution:
    lookup: dict[str, Any] = field(default_factory=dict)  # category_key(name) -> id
    created: list[CategoryEntry] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)  # names left unset on the records
    failures: list[tuple[str, str]] = field(default_factory=list)  # (name, error message)

    def id_for(self, name: str | None) -> Any:
        if not name:
            return None
        return self.lookup.get(category_key(name))


class CategoryResolver:
    def __init__(self, store: CategoryStore) -> None:
        self.store = store

    def resolve(self, names: Iterable[str | None], create_missing: bool = False) -> CategoryResolution:
        """Resolve ``names`` to ids, creating missing entries when enabled.

        A failed creation leaves that name unresolved and is reported in
        ``failures``; it does not stop the import.
        """
        existing = self.store.list_categories()
        resolution = CategoryResolution()
        for entry in existing:
            resolution.lookup.setdefault(category_key(entry.name), entry.id)

        unseen: dict[str, str] = {}  # key -> first spelling
        for name in names:
            if not name or not name.strip():
                continue
            key = category_key(name)
            if key not in resolution.lookup and key not in unseen:
                unseen[key] = " ".join(name.split())

        if not unseen:
            return resolution
        if not create_missing:
            resolution.unresolved = list(unseen.values())
            logger.info("%d formation type(s) not found and left unset: %s", len(unseen), resolution.unresolved)
            return resolution

        next_position = max((e.order_position for e in existing), default=-1) + 1
        for offset, (key, name) in enumerate(unseen.items()):
            color = CATEGORY_PALETTE[(len(existing) + offset) % len(CATEGORY_PALETTE)]
            try:
                entry = self.store.create_category(name, color, next_position + offset)
            except Exception as e:
                logger.warning("could not create formation type %r: %s", name, e)
                resolution.unresolved.append(name)
                resolution.failures.append((name, str(e)))
                continue
            resolution.lookup[key] = entry.id
            resolution.created.append(entry)
        logger.info("created %d formation type(s)", len(resolution.created))
        return resolution
