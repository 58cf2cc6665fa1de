from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""CanonicalRecord model: a RawRow projected through the field mapping.

Carries the typed lead attributes plus the values derived during the import
(full name, default status/priority, owner, formation type id).
"""

__all__ = [
    "CanonicalRecord",
    "IMPORT_SOURCE",
    "PRIORITIES",
]

IMPORT_SOURCE = "import_csv"
PRIORITIES = ("cold", "warm", "hot", "urgent")


@dataclass(frozen=True)
class CanonicalRecord:
    """Typed lead record ready for persistence.

    ``source_row_index`` points back to the RawRow it was built from and is
    used to correlate store-assigned ids after insertion.
    """
    source_row_index: int
    row_number: int
    status: str
    priority: str
    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company_name: str | None = None
    job_title: str | None = None
    linkedin_url: str | None = None
    website: str | None = None
    city: str | None = None
    country: str | None = None
    sector: str | None = None
    company_size: str | None = None
    lead_type: str | None = None
    source_campaign: str | None = None
    product_interest: str | None = None
    notes: str | None = None
    assigned_to: Any = None
    formation_type_id: Any = None
    source: str = IMPORT_SOURCE
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_identity(self) -> bool:
        return bool(self.full_name or self.email or self.phone)

    def to_row(self) -> dict[str, Any]:
        """Column -> value dict for the leads table (team_id added by the store)."""
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "company_name": self.company_name,
            "job_title": self.job_title,
            "linkedin_url": self.linkedin_url,
            "website": self.website,
            "city": self.city,
            "country": self.country,
            "sector": self.sector,
            "company_size": self.company_size,
            "lead_type": self.lead_type,
            "source_campaign": self.source_campaign,
            "product_interest": self.product_interest,
            "notes": self.notes,
            "status": self.status,
            "priority": self.priority,
            "source": self.source,
            "assigned_to": self.assigned_to,
            "formation_type_id": self.formation_type_id,
            "is_decision_maker": False,
            "ai_analyzed": False,
            "tags": list(self.tags),
            "custom_fields": {},
        }
