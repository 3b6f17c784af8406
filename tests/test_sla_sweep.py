import asyncio
from datetime import timedelta

from conftest import T0, RecordingProvider, drive, rule

from app.modules.casemanager.domain import AlertEvent, AssignmentInfo
from app.modules.casemanager.provider import ProviderRegistry
from app.modules.casemanager.util import ActivityType, CaseStatus, NotificationChannel, NotificationEvent


def create(p, fingerprint="fp-1", severity="critical", assignment=None, rule_assignment=None):
    alert = AlertEvent.from_payload(
        {"status": "firing", "fingerprint": fingerprint, "labels": {"alertname": "X", "severity": severity}}
    )
    return drive(p, p.lifecycle.create(alert, rule_assignment, assignment))


def test_sweep_flags_only_overdue_open_cases(pipeline):
    overdue = create(pipeline, "fp-1", "critical")
    in_time = create(pipeline, "fp-2", "low")
    closed = create(pipeline, "fp-3", "critical")
    drive(pipeline, pipeline.lifecycle.close(closed.id, "done"))
    pipeline.clock.advance(hours=5)

    breached = drive(pipeline, pipeline.lifecycle.sla_breach_sweep())

    assert [c.id for c in breached] == [overdue.id]
    stored = pipeline.repo.get_case(overdue.id)
    assert stored.sla_breached
    assert stored.sla_breached_at == T0 + timedelta(hours=5)
    assert not pipeline.repo.get_case(in_time.id).sla_breached
    assert not pipeline.repo.get_case(closed.id).sla_breached


def test_deadline_exactly_now_is_not_breached(pipeline):
    create(pipeline, severity="critical")
    pipeline.clock.advance(hours=4)

    assert drive(pipeline, pipeline.lifecycle.sla_breach_sweep()) == []


def test_sweep_is_idempotent(pipeline):
    case = create(pipeline)
    pipeline.clock.advance(hours=5)

    first = drive(pipeline, pipeline.lifecycle.sla_breach_sweep())
    pipeline.clock.advance(hours=1)
    second = drive(pipeline, pipeline.lifecycle.sla_breach_sweep())

    assert [c.id for c in first] == [case.id]
    assert second == []
    breaches = [a for a in pipeline.lifecycle.list_activities(case.id) if a.type == ActivityType.SLA_BREACHED]
    assert len(breaches) == 1
    assert pipeline.repo.get_case(case.id).sla_breached_at == T0 + timedelta(hours=5)


def test_concurrent_close_wins_over_sweep(pipeline):
    case = create(pipeline)
    pipeline.clock.advance(hours=5)

    async def _race():
        closed, breached = await asyncio.gather(
            pipeline.lifecycle.close(case.id, "fixed"),
            pipeline.lifecycle.sla_breach_sweep(),
        )
        await pipeline.fanout.drain()
        return closed, breached

    closed, breached = asyncio.run(_race())

    assert closed.status == CaseStatus.CLOSED
    assert breached == []
    stored = pipeline.repo.get_case(case.id)
    assert stored.status == CaseStatus.CLOSED
    assert not stored.sla_breached


def test_breach_of_case_closed_after_scan_is_skipped(pipeline, monkeypatch):
    case = create(pipeline)
    pipeline.clock.advance(hours=5)
    scan = pipeline.repo.find_cases_due_for_sla(pipeline.clock())
    drive(pipeline, pipeline.lifecycle.close(case.id, "fixed"))
    monkeypatch.setattr(pipeline.repo, "find_cases_due_for_sla", lambda when: scan)

    assert drive(pipeline, pipeline.lifecycle.sla_breach_sweep()) == []
    assert not pipeline.repo.get_case(case.id).sla_breached


def test_service_sweep_notifies_owners_and_escalation_team(make_pipeline):
    providers = ProviderRegistry()
    realtime = RecordingProvider(NotificationChannel.REALTIME)
    providers.register(realtime)
    p = make_pipeline(providers=providers, notification_channels=["REALTIME"])
    configured = p.registry.save_rule(rule("rule-a", escalation_team_id=20))
    case = create(p, assignment=AssignmentInfo.of(user_ids=[1]), rule_assignment=configured)
    realtime.sent.clear()
    p.clock.advance(hours=9)

    breached = drive(p, p.service.run_sla_sweep())

    assert [c.id for c in breached] == [case.id]
    assert sorted(d.target for d in realtime.sent) == ["user.1", "user.3"]
    assert {d.event for d in realtime.sent} == {NotificationEvent.SLA_BREACH}
    assert all(d.subject == f"SLA Breach Alert: {case.case_number}" for d in realtime.sent)
