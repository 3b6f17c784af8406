"""Audit row for every alert received through the webhook."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from app.modules.casemanager.util import AlertStatus, IngestOutcome


@dataclass
class AlertRecord:
    fingerprint: str
    status: AlertStatus
    received_at: datetime
    receiver: str = ""
    rule_uid: str | None = None
    external_alert_id: str | None = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    generator_url: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    case_id: int | None = None
    outcome: IngestOutcome | None = None
    id: int | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fingerprint": self.fingerprint,
            "status": self.status.value,
            "ruleUid": self.rule_uid,
            "externalAlertId": self.external_alert_id,
            "caseId": self.case_id,
            "outcome": self.outcome.value if self.outcome else None,
        }
