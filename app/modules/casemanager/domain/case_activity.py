"""Append-only case audit entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from app.modules.casemanager.util import ActivityType, format_iso


@dataclass(frozen=True)
class CaseActivity:
    case_id: int
    type: ActivityType
    description: str
    actor: str
    timestamp: datetime
    field_name: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    id: int | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "caseId": self.case_id,
            "type": self.type.value,
            "fieldName": self.field_name,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "description": self.description,
            "actor": self.actor,
            "timestamp": format_iso(self.timestamp),
        }
