"""Case management service: webhook orchestration and periodic jobs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List

from app.settings import Settings

from app.modules.casemanager.domain import BatchResult, Case, SyncReport, WebhookContext, split_payload
from app.modules.casemanager.ingest import AlertIngestor
from app.modules.casemanager.lifecycle import CaseLifecycleManager
from app.modules.casemanager.notify import NotificationFanout
from app.modules.casemanager.registry import RuleRegistry, RuleSource
from app.modules.casemanager.util import CaseStatus, NotificationEvent, Severity, now
from app.modules.casemanager.util.exceptions import PayloadException

log = logging.getLogger(__name__)


class CaseManagementService:
    def __init__(
        self,
        settings: Settings,
        ingestor: AlertIngestor,
        lifecycle: CaseLifecycleManager,
        registry: RuleRegistry,
        fanout: NotificationFanout,
        rule_source: RuleSource | None = None,
    ) -> None:
        self.settings = settings
        self.ingestor = ingestor
        self.lifecycle = lifecycle
        self.registry = registry
        self.fanout = fanout
        self.rule_source = rule_source
        self._sla_task: asyncio.Task | None = None
        self._sync_task: asyncio.Task | None = None

    # ---- webhook ----------------------------------------------------------
    async def process_webhook(self, payload: Any) -> Dict[str, Any]:
        try:
            alerts = split_payload(payload)
        except PayloadException as exc:
            log.warning("Rejected webhook payload: %s", exc)
            return builder_error(str(exc))

        context = WebhookContext.from_payload(payload, received_at=now())
        log.info(
            "Webhook from receiver=%s status=%s with %d alert(s)",
            context.receiver or "-",
            context.status or "-",
            len(alerts),
        )
        results = await asyncio.gather(
            *(self.ingestor.ingest(raw, context, index) for index, raw in enumerate(alerts))
        )
        batch = BatchResult(receiver=context.receiver, results=list(results))
        if batch.failed:
            log.warning("Webhook batch finished with %d failed alert(s) of %d", batch.failed, len(results))
        return batch.to_dict()

    # ---- manual operations ------------------------------------------------
    def get_case(self, case_id: int) -> Case:
        return self.lifecycle.get_case(case_id)

    def list_unassigned_cases(self) -> List[Case]:
        return self.lifecycle.list_unassigned_cases()

    async def assign(
        self,
        case_id: int,
        user_id: int | None = None,
        team_id: int | None = None,
        replace: bool = True,
        actor: str = "system",
    ) -> Case:
        return await self.lifecycle.assign(case_id, user_id=user_id, team_id=team_id, replace=replace, actor=actor)

    async def close(
        self,
        case_id: int,
        reason: str,
        root_cause: str | None = None,
        resolution_actions: str | None = None,
        actor: str = "system",
    ) -> Case:
        return await self.lifecycle.close(case_id, reason, root_cause, resolution_actions, actor)

    async def escalate(self, case_id: int, reason: str, actor: str = "system") -> Case:
        return await self.lifecycle.escalate(case_id, reason, actor)

    async def update_case(
        self,
        case_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        status: CaseStatus | None = None,
        severity: Severity | None = None,
        priority: int | None = None,
        actor: str = "system",
    ) -> Case:
        case = None
        if severity is not None or priority is not None:
            case = await self.lifecycle.update_severity_or_priority(case_id, severity, priority, actor)
        if title is not None or description is not None or status is not None:
            case = await self.lifecycle.update_case(
                case_id, title=title, description=description, status=status, actor=actor
            )
        return case or self.lifecycle.get_case(case_id)

    async def bulk_assign(self, case_ids: Iterable[int], user_id: int, actor: str = "system") -> Dict[str, Any]:
        return await self.lifecycle.bulk_assign(case_ids, user_id, actor)

    async def bulk_close(self, case_ids: Iterable[int], reason: str, actor: str = "system") -> Dict[str, Any]:
        return await self.lifecycle.bulk_close(case_ids, reason, actor)

    # ---- periodic jobs ----------------------------------------------------
    async def run_sla_sweep(self) -> List[Case]:
        breached = await self.lifecycle.sla_breach_sweep()
        for case in breached:
            rule = self.registry.lookup_rule(case.rule_uid)
            extra = (rule.escalation_team_id,) if rule and rule.escalation_team_id is not None else ()
            self.fanout.notify(case, NotificationEvent.SLA_BREACH, extra_team_ids=extra)
        return breached

    async def sync_rules(self) -> SyncReport:
        if self.rule_source is None:
            return SyncReport(error="no rule source configured")
        return await asyncio.to_thread(self.registry.sync_from, self.rule_source)

    async def sla_sweep_task(self) -> None:
        if self._sla_task is None:
            self._sla_task = asyncio.create_task(self._sla_loop())

    async def rule_sync_task(self) -> None:
        if self._sync_task is None:
            self._sync_task = asyncio.create_task(self._sync_loop())

    async def _sla_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sla_sweep_interval_seconds)
            try:
                await self.run_sla_sweep()
            except Exception:  # noqa: BLE001
                log.exception("SLA sweep failed")

    async def _sync_loop(self) -> None:
        while True:
            try:
                await self.sync_rules()
            except Exception:  # noqa: BLE001
                log.exception("Rule sync failed")
            await asyncio.sleep(self.settings.rule_sync_interval_seconds)

    async def shutdown(self) -> None:
        for task in (self._sla_task, self._sync_task):
            if task is not None:
                task.cancel()
        self._sla_task = None
        self._sync_task = None
        await self.fanout.drain()
        await self.fanout.providers.aclose()


def builder_success(msg: str, **extra: Any) -> Dict[str, Any]:
    return {"status": "success", "message": msg, **extra}


def builder_error(msg: str) -> Dict[str, Any]:
    return {"status": "error", "message": msg}
