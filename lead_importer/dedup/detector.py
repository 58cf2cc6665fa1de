"""
Deterministic email/phone duplicate detection for lead imports.

Two entry points:

- ``check_one`` asks the store about a single email/phone pair.
- ``check_batch`` takes one identity snapshot of the store and checks a whole
  file against it and against itself. The first occurrence of an identity in
  iteration order is canonical; later rows reference it, never the reverse.
  Cost is O(snapshot + batch).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any, Protocol

from ..models.duplicate import (
    DuplicateCandidate,
    DuplicateScope,
    IdentityCandidate,
    StoredIdentity,
)

__all__ = [
    "IdentityLookup",
    "build_identity_index",
    "check_batch",
    "check_one",
    "normalize_email",
    "normalize_phone",
]

_NON_DIGIT = re.compile(r"\D")


class IdentityLookup(Protocol):
    def find_by_email_or_phone(self, email: str | None, phone: str | None) -> StoredIdentity | None:
        ...


def normalize_email(value: object | None) -> str | None:
    """Trim and lower-case; blank -> None."""
    if value is None:
        return None
    token = str(value).strip().lower()
    return token or None


def normalize_phone(value: object | None) -> str | None:
    """Drop every non-digit character except a leading '+'; blank -> None.

    "+33 (0)6 12-34-56-78" -> "+330612345678"
    """
    if value is None:
        return None
    token = str(value).strip()
    if not token:
        return None
    prefix = "+" if token.startswith("+") else ""
    digits = _NON_DIGIT.sub("", token)
    if not digits:
        return None
    return prefix + digits


def check_one(
    store: IdentityLookup,
    email: str | None = None,
    phone: str | None = None,
    index: int | None = None,
) -> DuplicateCandidate | None:
    """Look up one email/phone pair in the store.

    Returns None when neither channel is given or nothing matches; otherwise
    a STORE-scoped candidate whose ``matching_fields`` say which channel(s)
    matched the returned record.
    """
    norm_email = normalize_email(email)
    norm_phone = normalize_phone(phone)
    if norm_email is None and norm_phone is None:
        return None

    existing = store.find_by_email_or_phone(norm_email, norm_phone)
    if existing is None:
        return None

    fields: set[str] = set()
    if norm_email is not None and normalize_email(existing.email) == norm_email:
        fields.add("email")
    if norm_phone is not None and normalize_phone(existing.phone) == norm_phone:
        fields.add("phone")
    return DuplicateCandidate(
        source_row_index=index,
        matched_existing_id=existing.id,
        matching_fields=frozenset(fields),
        scope=DuplicateScope.STORE,
    )


def build_identity_index(snapshot: Iterable[StoredIdentity]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Normalized email -> id and normalized phone -> id.

    The earliest snapshot entry wins when several stored leads share an identity.
    """
    email_index: dict[str, Any] = {}
    phone_index: dict[str, Any] = {}
    for identity in snapshot:
        email = normalize_email(identity.email)
        if email is not None:
            email_index.setdefault(email, identity.id)
        phone = normalize_phone(identity.phone)
        if phone is not None:
            phone_index.setdefault(phone, identity.id)
    return email_index, phone_index


def check_batch(
    existing_snapshot: Iterable[StoredIdentity],
    candidates: Iterable[IdentityCandidate],
) -> dict[int, DuplicateCandidate]:
    """Flag candidates matching the store or an earlier candidate.

    Candidates are processed in the order given, which callers keep equal to
    row index order. A store match always takes priority over an in-file match
    and rows that match the store are not added to the in-file indices. Rows
    with neither email nor phone are never flagged nor indexed.
    """
    email_index, phone_index = build_identity_index(existing_snapshot)
    batch_emails: dict[str, int] = {}
    batch_phones: dict[str, int] = {}
    results: dict[int, DuplicateCandidate] = {}

    for cand in candidates:
        email = normalize_email(cand.email)
        phone = normalize_phone(cand.phone)
        if email is None and phone is None:
            continue

        fields: set[str] = set()
        existing_id: Any = None
        if email is not None and email in email_index:
            fields.add("email")
            existing_id = email_index[email]
        if phone is not None and phone in phone_index:
            fields.add("phone")
            if existing_id is None:
                existing_id = phone_index[phone]
        if fields:
            results[cand.index] = DuplicateCandidate(
                source_row_index=cand.index,
                matched_existing_id=existing_id,
                matching_fields=frozenset(fields),
                scope=DuplicateScope.STORE,
            )
            continue

        matched_row: int | None = None
        if email is not None:
            if email in batch_emails:
                fields.add("email")
                matched_row = batch_emails[email]
            else:
                batch_emails[email] = cand.index
        if phone is not None:
            if phone in batch_phones:
                fields.add("phone")
                if matched_row is None:
                    matched_row = batch_phones[phone]
            else:
                batch_phones[phone] = cand.index
        if fields:
            results[cand.index] = DuplicateCandidate(
                source_row_index=cand.index,
                matched_existing_id=None,
                matching_fields=frozenset(fields),
                scope=DuplicateScope.BATCH,
                matched_row_index=matched_row,
            )

    return results
