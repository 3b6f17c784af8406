"""Drives one raw webhook alert through dedup, assignment and the case lifecycle."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Mapping

from app.modules.casemanager.assignment import AssignmentResolver
from app.modules.casemanager.domain import (
    AlertEvent,
    AlertRecord,
    AssignmentInfo,
    Case,
    IngestResult,
    WebhookContext,
)
from app.modules.casemanager.lifecycle import CaseLifecycleManager
from app.modules.casemanager.registry import RuleRegistry
from app.modules.casemanager.repositories import CaseManagementRepository
from app.modules.casemanager.util import AlertStatus, IngestOutcome
from app.settings import Settings

from .dedup import DedupAction, Deduplicator
from .extractors import RuleUidExtractor, ensure_fingerprint, external_alert_id

log = logging.getLogger(__name__)


class AlertIngestor:
    def __init__(
        self,
        settings: Settings,
        repository: CaseManagementRepository,
        registry: RuleRegistry,
        resolver: AssignmentResolver,
        lifecycle: CaseLifecycleManager,
        deduplicator: Deduplicator | None = None,
        extractor: RuleUidExtractor | None = None,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.registry = registry
        self.resolver = resolver
        self.lifecycle = lifecycle
        self.deduplicator = deduplicator or Deduplicator(repository, settings.duplicate_window_minutes)
        self.extractor = extractor or RuleUidExtractor()

    async def ingest(self, raw: Mapping[str, Any], context: WebhookContext, index: int = 0) -> IngestResult:
        """Process a single alert. Never raises; failures come back as FAILED results."""
        fingerprint = None
        rule_uid = None
        try:
            alert = AlertEvent.from_payload(raw)
            received_at = context.received_at
            rule_uid = self.extractor.extract(alert)
            fingerprint = ensure_fingerprint(alert, rule_uid, received_at)
            record = self._audit(alert, context, fingerprint, rule_uid)

            async with self.deduplicator.guard(fingerprint):
                if alert.status == AlertStatus.RESOLVED:
                    case = await self.lifecycle.resolve_from_external_signal(fingerprint)
                    outcome = IngestOutcome.RESOLVED if case is not None else IngestOutcome.IGNORED
                else:
                    outcome, case = await self._handle_firing(alert, fingerprint, rule_uid, record, context)

            self._finish_audit(record, case, outcome)
            return IngestResult(
                index=index,
                outcome=outcome,
                fingerprint=fingerprint,
                rule_uid=rule_uid,
                case_id=case.id if case else None,
                case_number=case.case_number if case else None,
            )
        except Exception as exc:  # noqa: BLE001
            log.exception("Failed to ingest alert #%d (fingerprint=%s)", index, fingerprint or "-")
            return IngestResult(
                index=index,
                outcome=IngestOutcome.FAILED,
                fingerprint=fingerprint,
                rule_uid=rule_uid,
                error=str(exc),
            )

    async def _handle_firing(
        self,
        alert: AlertEvent,
        fingerprint: str,
        rule_uid: str | None,
        record: AlertRecord | None,
        context: WebhookContext,
    ) -> tuple[IngestOutcome, Case]:
        received_at = context.received_at
        decision = self.deduplicator.classify(fingerprint, received_at)
        if decision.action == DedupAction.UPDATE:
            case = await self.lifecycle.record_duplicate(decision.case.id, alert, received_at)
            log.info("Alert %s is a duplicate of case %s", fingerprint, case.case_number)
            return IngestOutcome.DUPLICATE, case
        if decision.action == DedupAction.REOPEN:
            case = await self.lifecycle.reopen(decision.case.id, alert, received_at)
            return IngestOutcome.REOPENED, case

        rule = self.registry.lookup_rule(rule_uid)
        if rule_uid and rule is None:
            log.warning("Alert %s references unknown rule %s, creating an unowned case", fingerprint, rule_uid)
        assignment = self.resolver.resolve(rule) if self.settings.auto_assign_enabled else AssignmentInfo.empty()
        alert_id = record.external_alert_id if record else external_alert_id(alert, fingerprint, rule_uid, received_at)
        if not alert.fingerprint:
            alert = dataclasses.replace(alert, fingerprint=fingerprint)
        case = await self.lifecycle.create(
            alert,
            rule,
            assignment,
            rule_uid=rule_uid,
            external_alert_id=alert_id,
            received_at=received_at,
        )
        return IngestOutcome.CREATED, case

    def _audit(
        self,
        alert: AlertEvent,
        context: WebhookContext,
        fingerprint: str,
        rule_uid: str | None,
    ) -> AlertRecord | None:
        record = AlertRecord(
            fingerprint=fingerprint,
            status=alert.status,
            received_at=context.received_at,
            receiver=context.receiver,
            rule_uid=rule_uid,
            external_alert_id=external_alert_id(alert, fingerprint, rule_uid, context.received_at),
            labels=dict(alert.labels),
            annotations=dict(alert.annotations),
            generator_url=alert.generator_url,
            starts_at=alert.starts_at,
            ends_at=alert.ends_at,
        )
        try:
            return self.repository.save_alert_record(record)
        except Exception:  # noqa: BLE001
            log.exception("Unable to persist audit record for alert %s", fingerprint)
            return None

    def _finish_audit(self, record: AlertRecord | None, case: Case | None, outcome: IngestOutcome) -> None:
        if record is None:
            return
        record.case_id = case.id if case else None
        record.outcome = outcome
        try:
            self.repository.update_alert_record(record)
        except Exception:  # noqa: BLE001
            log.exception("Unable to update audit record %s", record.id)
