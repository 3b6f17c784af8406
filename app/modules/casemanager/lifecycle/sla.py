"""SLA deadline table."""

from __future__ import annotations

from datetime import datetime, timedelta

from app.modules.casemanager.util import CaseManagerConstant, Severity


def sla_hours(severity: Severity, priority: int | None = None) -> int:
    if priority is not None:
        return CaseManagerConstant.SLA_HOURS_BY_PRIORITY.get(priority, CaseManagerConstant.DEFAULT_SLA_HOURS)
    return severity.sla_hours


def compute_sla_deadline(reference: datetime, severity: Severity, priority: int | None = None) -> datetime:
    return reference + timedelta(hours=sla_hours(severity, priority))
