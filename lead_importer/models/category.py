from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = [
    "CategoryEntry",
]


@dataclass(frozen=True)
class CategoryEntry:
    """Auxiliary lookup entity referenced by leads via id (formation type)."""
    id: Any
    name: str
    color_hex: str
    order_position: int
    is_active: bool = True
