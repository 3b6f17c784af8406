from datetime import timedelta

import pytest
from conftest import T0, drive, rule

from app.modules.casemanager.domain import AlertEvent, AssignmentInfo
from app.modules.casemanager.lifecycle import check_transition, compute_sla_deadline, sla_hours
from app.modules.casemanager.util import ActivityType, CaseStatus, Severity
from app.modules.casemanager.util.exceptions import (
    CaseConflictException,
    InvalidTransitionException,
    ResourceNotFoundException,
)


def alert(fingerprint="fp-1", **labels) -> AlertEvent:
    return AlertEvent.from_payload(
        {
            "status": "firing",
            "fingerprint": fingerprint,
            "labels": {"alertname": "DiskFull", **labels},
            "annotations": {"description": 'Disk \\"root\\" at [no value]'},
        }
    )


def create(p, assignment=None, rule_assignment=None, **labels):
    return drive(p, p.lifecycle.create(alert(**labels), rule_assignment, assignment))


@pytest.mark.parametrize(
    "severity, priority, hours",
    [
        (Severity.CRITICAL, None, 4),
        (Severity.HIGH, None, 8),
        (Severity.MEDIUM, None, 24),
        (Severity.LOW, None, 72),
        (Severity.LOW, 1, 4),
        (Severity.CRITICAL, 4, 72),
        (Severity.HIGH, 9, 24),
    ],
)
def test_sla_table(severity, priority, hours):
    assert sla_hours(severity, priority) == hours
    assert compute_sla_deadline(T0, severity, priority) == T0 + timedelta(hours=hours)


def test_create_unowned_case(pipeline):
    case = create(pipeline, severity="critical")

    assert case.status == CaseStatus.OPEN
    assert case.severity == Severity.CRITICAL
    assert case.priority == 1
    assert case.sla_deadline == T0 + timedelta(hours=4)
    assert case.assigned_at is None
    assert case.title == "DiskFull"
    assert "Alert Details: Disk root at No Data" in case.description
    activities = pipeline.lifecycle.list_activities(case.id)
    assert [a.type for a in activities] == [ActivityType.CREATED]


def test_create_with_owners_is_assigned(pipeline):
    case = create(pipeline, AssignmentInfo.of(user_ids=[1]), rule("rule-a", severity=Severity.LOW))

    assert case.status == CaseStatus.ASSIGNED
    assert case.assigned_at == T0
    assert case.rule_uid == "rule-a"
    assert case.sla_deadline == T0 + timedelta(hours=72)
    assert "Alert Rule: Rule rule-a" in case.description


def test_case_numbers_are_sequential_and_immutable(pipeline):
    first = create(pipeline)
    second = create(pipeline, fingerprint="fp-2")

    assert (first.case_number, second.case_number) == ("CASE-2024-00001", "CASE-2024-00002")
    with pytest.raises(AttributeError):
        first.case_number = "CASE-2024-99999"


def test_transition_table():
    check_transition(CaseStatus.OPEN, CaseStatus.IN_PROGRESS)
    check_transition(CaseStatus.ASSIGNED, CaseStatus.OPEN)
    check_transition(CaseStatus.RESOLVED, CaseStatus.CLOSED)
    for current, target in [
        (CaseStatus.IN_PROGRESS, CaseStatus.OPEN),
        (CaseStatus.RESOLVED, CaseStatus.OPEN),
        (CaseStatus.CLOSED, CaseStatus.OPEN),
        (CaseStatus.CLOSED, CaseStatus.RESOLVED),
    ]:
        with pytest.raises(InvalidTransitionException):
            check_transition(current, target)


def test_update_case_status_and_fields(pipeline):
    case = create(pipeline)

    updated = drive(
        pipeline,
        pipeline.lifecycle.update_case(case.id, title="Disk full on db-1", status=CaseStatus.IN_PROGRESS, actor="bob"),
    )
    with pytest.raises(InvalidTransitionException):
        drive(pipeline, pipeline.lifecycle.update_case(case.id, status=CaseStatus.OPEN))
    resolved = drive(pipeline, pipeline.lifecycle.update_case(case.id, status=CaseStatus.RESOLVED))

    assert updated.title == "Disk full on db-1"
    assert resolved.status == CaseStatus.RESOLVED
    assert resolved.resolved_at == T0
    change = [a for a in pipeline.lifecycle.list_activities(case.id) if a.type == ActivityType.STATUS_CHANGE][0]
    assert (change.old_value, change.new_value, change.actor) == ("OPEN", "IN_PROGRESS", "bob")


def test_update_case_to_closed_goes_through_close(pipeline):
    case = create(pipeline)

    closed = drive(pipeline, pipeline.lifecycle.update_case(case.id, status=CaseStatus.CLOSED, actor="bob"))

    assert closed.status == CaseStatus.CLOSED
    assert closed.closed_by == "bob"


def test_severity_change_recomputes_sla_from_creation(pipeline):
    case = create(pipeline, severity="low")
    pipeline.clock.advance(hours=100)
    drive(pipeline, pipeline.lifecycle.sla_breach_sweep())

    updated = drive(pipeline, pipeline.lifecycle.update_severity_or_priority(case.id, priority=1, actor="alice"))

    assert updated.sla_deadline == T0 + timedelta(hours=4)
    assert updated.sla_breached
    activities = [a for a in pipeline.lifecycle.list_activities(case.id) if a.type == ActivityType.UPDATED]
    assert (activities[0].field_name, activities[0].old_value, activities[0].new_value) == ("priority", "4", "1")


def test_priority_change_clears_breach_when_deadline_moves_out(pipeline):
    case = create(pipeline, severity="critical")
    pipeline.clock.advance(hours=5)
    drive(pipeline, pipeline.lifecycle.sla_breach_sweep())

    updated = drive(
        pipeline,
        pipeline.lifecycle.update_severity_or_priority(case.id, severity=Severity.LOW, priority=4),
    )

    assert updated.sla_deadline == T0 + timedelta(hours=72)
    assert not updated.sla_breached
    assert updated.sla_breached_at is None
    assert updated.severity == Severity.LOW


def test_invalid_priority_is_rejected(pipeline):
    case = create(pipeline)

    with pytest.raises(ValueError):
        drive(pipeline, pipeline.lifecycle.update_severity_or_priority(case.id, priority=7))


def test_assign_records_previous_and_new_owner(pipeline):
    case = create(pipeline)

    first = drive(pipeline, pipeline.lifecycle.assign(case.id, user_id=1, actor="lead"))
    second = drive(pipeline, pipeline.lifecycle.assign(case.id, team_id=10, replace=False, actor="lead"))

    assert first.status == CaseStatus.ASSIGNED
    assert second.assignment == AssignmentInfo.of(user_ids=[1], team_ids=[10])
    assigned = [a for a in pipeline.lifecycle.list_activities(case.id) if a.type == ActivityType.ASSIGNED]
    assert [(a.field_name, a.old_value, a.new_value) for a in assigned] == [
        ("assigned_to", "Unassigned", "Alice"),
        ("assigned_to", "Alice", "Team: Network"),
    ]


def test_assign_replace_drops_previous_owner(pipeline):
    case = create(pipeline, AssignmentInfo.of(user_ids=[1], team_ids=[10]))

    updated = drive(pipeline, pipeline.lifecycle.assign(case.id, user_id=2))

    assert updated.assignment == AssignmentInfo.of(user_ids=[2])


def test_assign_unknown_targets(pipeline):
    case = create(pipeline)

    with pytest.raises(ResourceNotFoundException):
        drive(pipeline, pipeline.lifecycle.assign(case.id, user_id=999))
    with pytest.raises(ResourceNotFoundException):
        drive(pipeline, pipeline.lifecycle.assign(case.id, team_id=999))
    with pytest.raises(ResourceNotFoundException):
        drive(pipeline, pipeline.lifecycle.assign(12345, user_id=1))
    with pytest.raises(ValueError):
        drive(pipeline, pipeline.lifecycle.assign(case.id))


def test_escalate_raises_priority_and_adds_escalation_team(pipeline):
    pipeline.registry.save_rule(rule("rule-a", severity=Severity.MEDIUM, escalation_team_id=20))
    case = create(pipeline, AssignmentInfo.of(user_ids=[1]), pipeline.registry.lookup_rule("rule-a"))

    escalated = drive(pipeline, pipeline.lifecycle.escalate(case.id, "customer impact", actor="alice"))

    assert escalated.priority == 2
    assert escalated.sla_deadline == T0 + timedelta(hours=8)
    assert escalated.assignment == AssignmentInfo.of(user_ids=[1], team_ids=[20])
    activity = pipeline.lifecycle.list_activities(case.id)[-1]
    assert activity.type == ActivityType.ESCALATED
    assert "customer impact" in activity.description


def test_escalate_stops_at_most_urgent(pipeline):
    case = create(pipeline, severity="critical")

    escalated = drive(pipeline, pipeline.lifecycle.escalate(case.id, "again"))

    assert escalated.priority == 1


def test_close_computes_resolution_time(pipeline):
    case = create(pipeline)
    pipeline.clock.advance(minutes=90, seconds=59)

    closed = drive(
        pipeline,
        pipeline.lifecycle.close(case.id, "disk cleaned", root_cause="logs", resolution_actions="rotate", actor="bob"),
    )

    assert closed.status == CaseStatus.CLOSED
    assert closed.closed_at == pipeline.clock()
    assert closed.closed_by == "bob"
    assert closed.resolution_time_minutes == 90
    assert (closed.root_cause, closed.resolution_actions) == ("logs", "rotate")
    with pytest.raises(InvalidTransitionException):
        drive(pipeline, pipeline.lifecycle.close(case.id, "again"))


def test_reopen_of_open_case_is_a_duplicate(pipeline):
    case = create(pipeline)

    same = drive(pipeline, pipeline.lifecycle.reopen(case.id, alert(), T0))

    assert same.status == CaseStatus.OPEN
    assert same.reopen_count == 0
    assert same.occurrence_count == 2


def test_stale_write_is_rejected(pipeline):
    case = create(pipeline)
    stale = pipeline.repo.get_case(case.id)
    drive(pipeline, pipeline.lifecycle.assign(case.id, user_id=1))

    stale.title = "lost update"
    with pytest.raises(CaseConflictException):
        pipeline.repo.update_case(stale)


def test_bulk_operations_report_per_id(pipeline):
    first = create(pipeline)
    second = create(pipeline, fingerprint="fp-2")

    assigned = drive(pipeline, pipeline.lifecycle.bulk_assign([first.id, 999], user_id=2))
    closed = drive(pipeline, pipeline.lifecycle.bulk_close([first.id, second.id, first.id], "cleanup"))

    assert assigned["succeeded"] == [first.id]
    assert 999 in assigned["failed"]
    assert closed["succeeded"] == [first.id, second.id]
    assert first.id in closed["failed"]


def test_unassigned_listing(pipeline):
    owned = create(pipeline, AssignmentInfo.of(team_ids=[10]))
    unowned = create(pipeline, fingerprint="fp-2")

    ids = [c.id for c in pipeline.lifecycle.list_unassigned_cases()]

    assert ids == [unowned.id]
    assert owned.id not in ids
