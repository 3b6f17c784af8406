import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.modules.casemanager.assignment import AssignmentResolver
from app.modules.casemanager.domain import Delivery, RuleAssignment, Team, User
from app.modules.casemanager.ingest import AlertIngestor, Deduplicator
from app.modules.casemanager.lifecycle import CaseLifecycleManager
from app.modules.casemanager.notify import NotificationFanout
from app.modules.casemanager.provider import ProviderRegistry
from app.modules.casemanager.registry import RuleRegistry
from app.modules.casemanager.repositories import InMemoryCaseManagementRepository
from app.modules.casemanager.service import CaseManagementService
from app.modules.casemanager.util import AssignmentStrategy, NotificationChannel, Severity
from app.modules.casemanager.util.exceptions import NotificationSendException
from app.settings import Settings

T0 = datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class RecordingProvider:
    def __init__(self, channel: NotificationChannel, fail_for=()) -> None:
        self.channel = channel
        self.fail_for = set(fail_for)
        self.sent = []

    def accepts(self, delivery: Delivery) -> bool:
        return self.channel != NotificationChannel.EMAIL or bool(delivery.email)

    async def send(self, delivery: Delivery) -> None:
        if delivery.target in self.fail_for:
            raise NotificationSendException(f"{delivery.target} unreachable")
        self.sent.append(delivery)

    async def aclose(self) -> None:
        return None


def build_settings(**overrides) -> Settings:
    defaults = {
        "storage_backend": "memory",
        "email_enabled": False,
        "realtime_push_url": None,
        "grafana_url": None,
        "sla_sweep_enabled": False,
        "rule_sync_enabled": False,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def seed_directory(repo: InMemoryCaseManagementRepository) -> None:
    repo.add_user(User(id=1, name="Alice", login="alice", email="alice@example.com"))
    repo.add_user(User(id=2, name="Bob", login="bob", email="bob@example.com"))
    repo.add_user(User(id=3, name="Carol", login="carol", email="carol@example.com"))
    repo.add_user(User(id=4, name="Dave", login="dave", email="dave@example.com", active=False))
    repo.add_user(User(id=5, name="Erin", login="erin"))
    repo.add_team(Team(id=10, name="Network", lead_id=1, member_ids=[1, 2]))
    repo.add_team(Team(id=20, name="Escalation", lead_id=4, member_ids=[3, 4]))
    repo.add_team(Team(id=30, name="Dormant", lead_id=5, member_ids=[5], active=False))


def rule(uid: str = "rule-a", **overrides) -> RuleAssignment:
    values = {
        "rule_uid": uid,
        "rule_name": f"Rule {uid}",
        "severity": Severity.HIGH,
        "strategy": AssignmentStrategy.MANUAL,
    }
    values.update(overrides)
    return RuleAssignment(**values)


def firing_alert(fingerprint: str = "fp-1", rule_uid: str | None = "rule-a", status: str = "firing", **extra) -> dict:
    labels = {"alertname": "HighLatency", "severity": "critical", "service": "checkout"}
    if rule_uid:
        labels["__alert_rule_uid__"] = rule_uid
    labels.update(extra.pop("labels", {}))
    alert = {
        "status": status,
        "fingerprint": fingerprint,
        "labels": labels,
        "annotations": {"summary": "Latency above 2s"},
        "startsAt": "2024-03-01T09:58:00Z",
        "endsAt": "0001-01-01T00:00:00Z",
    }
    alert.update(extra)
    return alert


def make_pipeline_for(settings: Settings | None = None, providers: ProviderRegistry | None = None):
    settings = settings or build_settings()
    clock = FixedClock()
    repo = InMemoryCaseManagementRepository()
    seed_directory(repo)
    registry = RuleRegistry(repo, clock=clock)
    resolver = AssignmentResolver(registry, repo)
    fanout = NotificationFanout(settings, repo, providers=providers or ProviderRegistry(), clock=clock)
    lifecycle = CaseLifecycleManager(settings, repo, registry, fanout, clock=clock)
    ingestor = AlertIngestor(
        settings,
        repo,
        registry,
        resolver,
        lifecycle,
        deduplicator=Deduplicator(repo, settings.duplicate_window_minutes, clock=clock),
    )
    service = CaseManagementService(settings, ingestor, lifecycle, registry, fanout)
    return SimpleNamespace(
        settings=settings,
        clock=clock,
        repo=repo,
        registry=registry,
        resolver=resolver,
        fanout=fanout,
        lifecycle=lifecycle,
        ingestor=ingestor,
        service=service,
    )


@pytest.fixture
def make_pipeline():
    def _make(providers: ProviderRegistry | None = None, **overrides):
        return make_pipeline_for(build_settings(**overrides), providers)

    return _make


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()


def drive(p, coro):
    """Run a coroutine and wait for the notifications it scheduled."""

    async def _run():
        result = await coro
        await p.fanout.drain()
        return result

    return asyncio.run(_run())
