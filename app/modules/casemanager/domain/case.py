"""Case entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from app.modules.casemanager.domain.assignment_info import AssignmentInfo
from app.modules.casemanager.util import CaseCategory, CaseStatus, Severity, format_iso

_OPEN_STATUSES = (CaseStatus.OPEN, CaseStatus.ASSIGNED, CaseStatus.IN_PROGRESS)


@dataclass
class Case:
    case_number: str
    title: str
    severity: Severity
    category: CaseCategory
    created_at: datetime
    priority: int | None = None
    status: CaseStatus = CaseStatus.OPEN
    description: str = ""
    assignment: AssignmentInfo = field(default_factory=AssignmentInfo)
    assigned_at: datetime | None = None
    sla_deadline: datetime | None = None
    sla_breached: bool = False
    sla_breached_at: datetime | None = None
    alert_fingerprint: str | None = None
    external_alert_id: str | None = None
    rule_uid: str | None = None
    affected_services: str | None = None
    tags: List[str] = field(default_factory=list)
    alert_data: Dict[str, Any] = field(default_factory=dict)
    occurrence_count: int = 1
    last_alert_at: datetime | None = None
    reopen_count: int = 0
    resolved_at: datetime | None = None
    closed_at: datetime | None = None
    closed_by: str | None = None
    closure_reason: str | None = None
    root_cause: str | None = None
    resolution_actions: str | None = None
    resolution_time_minutes: int | None = None
    updated_at: datetime | None = None
    id: int | None = None
    version: int = 0

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "case_number" and getattr(self, "case_number", None):
            raise AttributeError("case_number cannot be changed once assigned")
        super().__setattr__(name, value)

    def is_open(self) -> bool:
        return self.status in _OPEN_STATUSES

    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "caseNumber": self.case_number,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "priority": self.priority,
            "category": self.category.value,
            "status": self.status.value,
            "assignment": self.assignment.to_dict(),
            "slaDeadline": format_iso(self.sla_deadline),
            "slaBreached": self.sla_breached,
            "alertFingerprint": self.alert_fingerprint,
            "externalAlertId": self.external_alert_id,
            "ruleUid": self.rule_uid,
            "affectedServices": self.affected_services,
            "tags": list(self.tags),
            "occurrenceCount": self.occurrence_count,
            "reopenCount": self.reopen_count,
            "resolvedAt": format_iso(self.resolved_at),
            "closedAt": format_iso(self.closed_at),
            "closureReason": self.closure_reason,
            "resolutionTimeMinutes": self.resolution_time_minutes,
            "createdAt": format_iso(self.created_at),
            "updatedAt": format_iso(self.updated_at),
        }
