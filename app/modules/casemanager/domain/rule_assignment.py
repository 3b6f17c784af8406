"""Rule assignment configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Set

from app.modules.casemanager.util import AssignmentStrategy, CaseCategory, Severity


@dataclass
class RuleAssignment:
    rule_uid: str
    rule_name: str = ""
    folder_uid: str | None = None
    folder_name: str | None = None
    datasource_uid: str | None = None
    description: str | None = None
    severity: Severity = Severity.MEDIUM
    category: CaseCategory = CaseCategory.OPERATIONAL
    strategy: AssignmentStrategy = AssignmentStrategy.MANUAL
    active: bool = True
    auto_assign_enabled: bool = True
    user_ids: Set[int] = field(default_factory=set)
    team_ids: Set[int] = field(default_factory=set)
    escalation_team_id: int | None = None
    rotation_index: int = 0
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: int | None = None

    def has_assignments(self) -> bool:
        return bool(self.user_ids or self.team_ids)

    def can_auto_assign(self) -> bool:
        return self.active and self.auto_assign_enabled and self.has_assignments()
