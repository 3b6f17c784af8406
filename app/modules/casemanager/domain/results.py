"""Outcome beans returned by ingestion and rule sync."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from app.modules.casemanager.util import IngestOutcome


@dataclass
class IngestResult:
    index: int
    outcome: IngestOutcome
    fingerprint: str | None = None
    rule_uid: str | None = None
    case_id: int | None = None
    case_number: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome != IngestOutcome.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "outcome": self.outcome.value,
            "fingerprint": self.fingerprint,
            "ruleUid": self.rule_uid,
            "caseId": self.case_id,
            "caseNumber": self.case_number,
            "error": self.error,
        }


@dataclass
class BatchResult:
    receiver: str
    results: List[IngestResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    def to_dict(self) -> Dict[str, Any]:
        if not self.failed:
            status = "success"
        elif self.succeeded:
            status = "partial"
        else:
            status = "error"
        return {
            "status": status,
            "receiver": self.receiver,
            "processed": len(self.results),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class SyncReport:
    created: List[str] = field(default_factory=list)
    skipped: int = 0
    error: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {"created": list(self.created), "skipped": self.skipped, "error": self.error}
