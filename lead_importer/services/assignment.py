from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..models.config_models import AssignmentMode, AssignmentStrategy
from ..models.team import TeamMember

"""Owner assignment for imported leads.

One AssignmentDistributor is created per import run and lives on the
ImportRun context; its rotation counter is never shared between runs.
``next_owner()`` is called exactly once per record handed to the persister.
"""

__all__ = [
    "AssignmentDistributor",
]

logger = logging.getLogger(__name__)


class AssignmentDistributor:
    def __init__(self, strategy: AssignmentStrategy, roster: Sequence[TeamMember]) -> None:
        self.strategy = strategy
        self.roster: tuple[TeamMember, ...] = tuple(roster)
        self.counter = 0
        self.mode = strategy.mode
        if self.mode is AssignmentMode.ROUND_ROBIN and not self.roster:
            logger.warning("round-robin assignment requested with an empty team; leads stay unassigned")
            self.mode = AssignmentMode.NONE
        if self.mode is AssignmentMode.FIXED and all(m.id != strategy.member_id for m in self.roster):
            logger.warning("fixed owner %s is not in the team roster", strategy.member_id)

    def next_owner(self) -> Any:
        """Owner id for the next accepted record (None = unassigned)."""
        if self.mode is AssignmentMode.FIXED:
            return self.strategy.member_id
        if self.mode is AssignmentMode.ROUND_ROBIN:
            member = self.roster[self.counter % len(self.roster)]
            self.counter += 1
            return member.id
        return None
