"""Service wiring and startup flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.modules.casemanager.assignment import AssignmentResolver
from app.modules.casemanager.ingest import AlertIngestor, Deduplicator
from app.modules.casemanager.lifecycle import CaseLifecycleManager
from app.modules.casemanager.notify import NotificationFanout
from app.modules.casemanager.registry import RuleRegistry
from app.modules.casemanager.repositories import CaseManagementRepository, InMemoryCaseManagementRepository
from app.modules.casemanager.repositories.mysql import MySQLCaseManagementRepository
from app.modules.casemanager.service import CaseManagementService
from app.modules.casemanager.sources import GrafanaRuleSource
from .settings import Settings
from .switches import CaseSwitch

log = logging.getLogger(__name__)


def build_repository(settings: Settings) -> CaseManagementRepository:
    backend = settings.storage_backend.lower()
    if backend == "mysql":
        repository = MySQLCaseManagementRepository(settings)
        repository.create_tables()
        return repository
    if backend != "memory":
        log.warning("Unknown storage backend %r, falling back to memory.", settings.storage_backend)
    return InMemoryCaseManagementRepository()


@dataclass
class ServiceContainer:
    """Container that wires plain-Python services with shared settings."""

    settings: Settings
    repository: CaseManagementRepository | None = None
    registry: RuleRegistry = field(init=False)
    resolver: AssignmentResolver = field(init=False)
    fanout: NotificationFanout = field(init=False)
    lifecycle: CaseLifecycleManager = field(init=False)
    ingestor: AlertIngestor = field(init=False)
    case_service: CaseManagementService = field(init=False)

    def __post_init__(self) -> None:
        if self.repository is None:
            self.repository = build_repository(self.settings)
        self.registry = RuleRegistry(self.repository)
        self.resolver = AssignmentResolver(self.registry, self.repository)
        self.fanout = NotificationFanout(self.settings, self.repository)
        self.lifecycle = CaseLifecycleManager(self.settings, self.repository, self.registry, self.fanout)
        self.ingestor = AlertIngestor(
            self.settings,
            self.repository,
            self.registry,
            self.resolver,
            self.lifecycle,
            deduplicator=Deduplicator(self.repository, self.settings.duplicate_window_minutes),
        )
        rule_source = GrafanaRuleSource(self.settings) if self.settings.grafana_url else None
        self.case_service = CaseManagementService(
            self.settings,
            self.ingestor,
            self.lifecycle,
            self.registry,
            self.fanout,
            rule_source=rule_source,
        )


async def bootstrap_services(container: ServiceContainer, switches: CaseSwitch) -> None:
    """Load the rule snapshot and start the background jobs."""

    log.info(
        "########### casemanager=%s sla_sweep=%s rule_sync=%s storage=%s ############",
        switches.casemanager_on(),
        switches.sla_sweep_on(),
        switches.rule_sync_on(),
        container.settings.storage_backend,
    )

    if not switches.casemanager_on():
        log.info("casemanager switch is OFF, skip case tasks")
        return

    try:
        container.registry.refresh()
    except Exception as exc:  # noqa: BLE001
        log.warning("Rule registry snapshot not loaded, lookups fall back to storage: %s", exc)

    if switches.sla_sweep_on():
        await container.case_service.sla_sweep_task()
    else:
        log.info("sla sweep switch is OFF, skip sweep task")

    if switches.rule_sync_on():
        await container.case_service.rule_sync_task()
    else:
        log.info("rule sync switch is OFF, skip sync task")


async def shutdown_services(container: ServiceContainer) -> None:
    await container.case_service.shutdown()
