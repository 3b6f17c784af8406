import asyncio

import httpx
from conftest import RecordingProvider, build_settings, drive, firing_alert, rule

from app.modules.casemanager.domain import AlertEvent, AssignmentInfo, WebhookContext
from app.modules.casemanager.provider import ProviderRegistry, RealtimeProvider
from app.modules.casemanager.util import (
    NotificationChannel,
    NotificationEvent,
    NotificationStatus,
)


def recording_registry(fail_for=()):
    registry = ProviderRegistry()
    email = RecordingProvider(NotificationChannel.EMAIL)
    realtime = RecordingProvider(NotificationChannel.REALTIME, fail_for=fail_for)
    registry.register(email)
    registry.register(realtime)
    return registry, email, realtime


def ingest(p, raw):
    return drive(p, p.ingestor.ingest(raw, WebhookContext(receiver="grafana", received_at=p.clock())))


def test_overlapping_user_and_team_get_one_notification_each(make_pipeline):
    providers, email, realtime = recording_registry()
    p = make_pipeline(providers=providers)
    p.registry.save_rule(rule(user_ids={1, 3}, team_ids={10}))

    result = ingest(p, firing_alert())

    notifications = p.repo.list_notifications(result.case_id)
    assert sorted(n.recipient_user_id for n in notifications) == [1, 2, 3]
    assert [n.recipient_user_id for n in notifications][:2] == [1, 3]
    assert all(n.status == NotificationStatus.SENT for n in notifications)
    assert all(n.type == NotificationEvent.CASE_CREATED for n in notifications)
    assert sorted(d.target for d in realtime.sent) == ["user.1", "user.2", "user.3"]
    assert sorted(d.email for d in email.sent) == ["alice@example.com", "bob@example.com", "carol@example.com"]
    assert realtime.sent[0].realtime_event == "case.created"
    assert realtime.sent[0].payload["caseNumber"] == "CASE-2024-00001"
    assert notifications[0].subject == "New Case Created: CASE-2024-00001"


def test_inactive_users_and_teams_are_skipped(pipeline):
    recipients = pipeline.fanout.resolve_recipients(AssignmentInfo.of(user_ids=[4], team_ids=[20, 30]))

    assert [u.id for u in recipients] == [3]


def test_extra_teams_are_merged_without_duplicates(pipeline):
    recipients = pipeline.fanout.resolve_recipients(AssignmentInfo.of(user_ids=[2]), extra_team_ids=[10])

    assert [u.id for u in recipients] == [2, 1]


def test_unowned_case_goes_to_admin_channel_only(make_pipeline):
    providers, email, realtime = recording_registry()
    p = make_pipeline(providers=providers, admin_email="ops@example.com")

    result = ingest(p, firing_alert(rule_uid=None))

    notifications = p.repo.list_notifications(result.case_id)
    assert len(notifications) == 1
    admin = notifications[0]
    assert admin.channel == NotificationChannel.ADMIN
    assert admin.recipient == "admin"
    assert admin.recipient_user_id is None
    assert admin.subject == "Unassigned Case: CASE-2024-00001"
    assert [d.target for d in realtime.sent] == ["admin"]
    assert realtime.sent[0].realtime_event == "admin.unassigned-case"
    assert [d.email for d in email.sent] == ["ops@example.com"]


def test_transport_failure_is_recorded_and_isolated(make_pipeline):
    providers, email, realtime = recording_registry(fail_for={"user.1"})
    p = make_pipeline(providers=providers)
    p.registry.save_rule(rule(user_ids={1, 2}))

    result = ingest(p, firing_alert())

    by_user = {n.recipient_user_id: n for n in p.repo.list_notifications(result.case_id)}
    assert by_user[1].status == NotificationStatus.FAILED
    assert "user.1 unreachable" in by_user[1].error_message
    assert by_user[1].metadata["transports"] == {"EMAIL": "SENT", "REALTIME": "FAILED"}
    assert by_user[1].sent_at == p.clock()
    assert by_user[2].status == NotificationStatus.SENT
    assert p.repo.get_case(result.case_id).status.value == "ASSIGNED"


def test_user_without_email_skips_email_transport(make_pipeline):
    providers, email, realtime = recording_registry()
    p = make_pipeline(providers=providers)
    p.registry.save_rule(rule(user_ids={5}))

    result = ingest(p, firing_alert())

    notification = p.repo.list_notifications(result.case_id)[0]
    assert notification.metadata["transports"] == {"EMAIL": "SKIPPED", "REALTIME": "SENT"}
    assert notification.channel == NotificationChannel.REALTIME
    assert email.sent == []


def test_assign_notifies_only_new_assignee(make_pipeline):
    providers, email, realtime = recording_registry()
    p = make_pipeline(providers=providers)
    p.registry.save_rule(rule(user_ids={1}))
    result = ingest(p, firing_alert())
    realtime.sent.clear()

    drive(p, p.lifecycle.assign(result.case_id, user_id=3, replace=False))

    assert [(d.target, d.realtime_event) for d in realtime.sent] == [("user.3", "case.assigned")]


def test_realtime_provider_posts_and_reports_gateway_errors(make_pipeline):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if b"user.2" in request.content:
            return httpx.Response(503)
        return httpx.Response(202)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    providers = ProviderRegistry()
    providers.register(RealtimeProvider("http://push.local/events", client))
    p = make_pipeline(providers=providers, notification_channels=["REALTIME"])
    p.registry.save_rule(rule(user_ids={1, 2}))

    result = ingest(p, firing_alert())

    by_user = {n.recipient_user_id: n for n in p.repo.list_notifications(result.case_id)}
    assert by_user[1].status == NotificationStatus.SENT
    assert by_user[2].status == NotificationStatus.FAILED
    assert "503" in by_user[2].error_message
    assert by_user[2].sent_at is None
    assert len(seen) == 2
    assert all(str(r.url) == "http://push.local/events" for r in seen)


def test_default_registry_only_registers_configured_transports():
    plain = ProviderRegistry.default(build_settings())
    wired = ProviderRegistry.default(build_settings(email_enabled=True, realtime_push_url="http://push.local"))

    assert [type(p).__name__ for p in plain.enabled(["EMAIL", "REALTIME", "bogus"])] == [
        "LoggingProvider",
        "LoggingProvider",
    ]
    assert [type(p).__name__ for p in wired.enabled(["email", "realtime"])] == ["EmailProvider", "RealtimeProvider"]
    asyncio.run(wired.aclose())


def test_notify_without_running_loop_is_dropped(pipeline):
    case = drive(pipeline, pipeline.lifecycle.create(AlertEvent.from_payload(firing_alert())))
    before = len(pipeline.repo.notifications)

    pipeline.fanout.notify(case, NotificationEvent.CASE_ASSIGNED)

    assert len(pipeline.repo.notifications) == before
    assert not pipeline.fanout._pending
