from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable, Iterator, Mapping

"""Header -> canonical lead field inference.

FIELD_PATTERNS is an ordered list of ``(field, [patterns])`` tuples evaluated
in declaration order: the first field with a matching pattern wins, so a
header resolves to the first semantically closest field. Patterns are matched
case-insensitively against the header after NFC normalization, trimming and
whitespace collapsing. French and English spellings are covered.

Headers nothing matches map to IGNORE, so the mapping is total.
"""

__all__ = [
    "FIELD_PATTERNS",
    "CANONICAL_FIELDS",
    "IDENTIFYING_FIELDS",
    "IGNORE",
    "FieldMapping",
    "MappingError",
    "infer_mapping",
    "match_field",
    "validate_mapping",
]

logger = logging.getLogger(__name__)

IGNORE = "ignore"

FIELD_PATTERNS: list[tuple[str, list[str]]] = [
    ("first_name", [r"^pr[eé]nom$", r"^first.?name$", r"^given.?name$"]),
    ("last_name", [r"^nom$", r"^nom.?de.?famille$", r"^last.?name$", r"^family.?name$", r"^surname$"]),
    ("full_name", [r"^nom.?complet$", r"^full.?name$", r"^name$"]),
    ("email", [r"^e?.?mail$", r"^courriel$", r"^adresse.?e?.?mail$", r"^e?.?mail.?address$"]),
    ("phone", [
        r"^t[eé]l[eé]?phone?$", r"^t[eé]l\.?$", r"^phone$", r"^phone.?number$",
        r"^mobile$", r"^portable$",
    ]),
    ("company_name", [
        r"^entreprise$", r"^soci[eé]t[eé]$", r"^company$", r"^company.?name$", r"^organi[sz]ation$",
    ]),
    ("job_title", [r"^poste$", r"^fonction$", r"^job.?title$", r"^title$", r"^position$"]),
    ("linkedin_url", [r"^linkedin$", r"^profil.?linkedin$", r"^linkedin.?(url|profile)$"]),
    ("website", [r"^site$", r"^website$", r"^url$", r"^site.?web$", r"^site.?internet$"]),
    ("city", [r"^ville$", r"^city$", r"^localit[eé]$"]),
    ("country", [r"^pays$", r"^country$"]),
    ("sector", [r"^secteur$", r"^sector$", r"^industry$", r"^industrie$"]),
    ("company_size", [
        r"^taille$", r"^size$", r"^effectif$", r"^employees$", r"^taille.?entreprise$", r"^company.?size$",
    ]),
    ("lead_type", [r"^type$", r"^b2b.?b2c$", r"^lead.?type$"]),
    ("formation_type", [
        r"^formation$", r"^type.?de.?formation$", r"^training$", r"^training.?type$", r"^programme?$",
    ]),
    ("source_campaign", [r"^campagne$", r"^campaign$", r"^source.?campaign$"]),
    ("product_interest", [r"^produit$", r"^product$", r"^product.?interest$", r"^int[eé]r[eê]t$"]),
    ("status", [r"^statut$", r"^status$"]),
    ("priority", [r"^priorit[eé]$", r"^priority$"]),
    ("notes", [r"^notes?$", r"^commentaires?$", r"^comments?$", r"^remarks?$"]),
]

CANONICAL_FIELDS: tuple[str, ...] = tuple(f for f, _ in FIELD_PATTERNS)

# A lead needs a name or a contact channel
IDENTIFYING_FIELDS = frozenset({"first_name", "last_name", "full_name", "email", "phone"})

_COMPILED: list[tuple[str, list[re.Pattern[str]]]] = [
    (f, [re.compile(p, re.IGNORECASE) for p in patterns]) for f, patterns in FIELD_PATTERNS
]


class MappingError(Exception):
    """Raised when a mapping cannot be used to import leads."""


def _normalize_header(header: str) -> str:
    return " ".join(unicodedata.normalize("NFC", header).split())


def match_field(header: str) -> str:
    """Return the canonical field for ``header`` or IGNORE."""
    normalized = _normalize_header(header)
    for field_name, regexes in _COMPILED:
        if any(rx.search(normalized) for rx in regexes):
            return field_name
    return IGNORE


class FieldMapping:
    """Total header -> field assignment, in header order.

    Several headers may target the same field; when transforming a row the
    last non-empty value (in header order) wins. ``conflicts()`` lists those
    fields so callers can warn about them.
    """

    def __init__(self, assignments: Mapping[str, str]) -> None:
        self._assignments: dict[str, str] = {}
        for header, field_name in assignments.items():
            self._assignments[header] = _check_field(field_name)

    def __getitem__(self, header: str) -> str:
        return self._assignments[header]

    def __iter__(self) -> Iterator[str]:
        return iter(self._assignments)

    def __len__(self) -> int:
        return len(self._assignments)

    def __contains__(self, header: object) -> bool:
        return header in self._assignments

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FieldMapping):
            return self._assignments == other._assignments
        return NotImplemented

    def __repr__(self) -> str:
        return f"FieldMapping({self._assignments!r})"

    @property
    def headers(self) -> list[str]:
        return list(self._assignments)

    def items(self) -> Iterable[tuple[str, str]]:
        return self._assignments.items()

    def as_dict(self) -> dict[str, str]:
        return dict(self._assignments)

    def override(self, header: str, field_name: str) -> None:
        """Replace the inferred field for one header."""
        if header not in self._assignments:
            raise MappingError(f"unknown header: {header!r}")
        self._assignments[header] = _check_field(field_name)

    def mapped_fields(self) -> set[str]:
        return {f for f in self._assignments.values() if f != IGNORE}

    def headers_for(self, field_name: str) -> list[str]:
        return [h for h, f in self._assignments.items() if f == field_name]

    def conflicts(self) -> dict[str, list[str]]:
        """Fields targeted by more than one header."""
        targets: dict[str, list[str]] = {}
        for header, field_name in self._assignments.items():
            if field_name != IGNORE:
                targets.setdefault(field_name, []).append(header)
        return {f: hs for f, hs in targets.items() if len(hs) > 1}

    def has_identifying_field(self) -> bool:
        return bool(self.mapped_fields() & IDENTIFYING_FIELDS)

    def project(self, values: Mapping[str, str]) -> dict[str, str]:
        """Apply the mapping to one row; blank cells never overwrite."""
        out: dict[str, str] = {}
        for header, field_name in self._assignments.items():
            if field_name == IGNORE:
                continue
            value = values.get(header, "")
            if value:
                out[field_name] = value
        return out


def _check_field(field_name: str) -> str:
    if field_name == IGNORE or field_name in CANONICAL_FIELDS:
        return field_name
    raise MappingError(f"unknown lead field: {field_name!r}")


def infer_mapping(headers: Iterable[str], overrides: Mapping[str, str] | None = None) -> FieldMapping:
    """Infer a mapping for ``headers`` and apply per-header overrides."""
    mapping = FieldMapping({h: match_field(h) for h in headers})
    if overrides:
        for header, field_name in overrides.items():
            mapping.override(header, field_name)
    return mapping


def validate_mapping(mapping: FieldMapping) -> dict[str, list[str]]:
    """Check a mapping is usable for an import.

    Raises MappingError when no header resolves to an identifying field.
    Returns the conflicting fields (also logged at WARN level).
    """
    if not mapping.has_identifying_field():
        raise MappingError(
            "no column is mapped to a name, email or phone field; "
            f"identifying fields are {sorted(IDENTIFYING_FIELDS)}"
        )
    conflicts = mapping.conflicts()
    for field_name, headers in conflicts.items():
        logger.warning(
            "field %s is mapped from several columns %s; the last non-empty value wins",
            field_name,
            headers,
        )
    return conflicts
