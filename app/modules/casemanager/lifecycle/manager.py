"""Case state machine: creation, transitions, reopen, auto-close and SLA sweep."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List

from app.modules.casemanager.domain import (
    AlertEvent,
    AssignmentInfo,
    Case,
    CaseActivity,
    RuleAssignment,
)
from app.modules.casemanager.notify import NotificationFanout
from app.modules.casemanager.registry import RuleRegistry
from app.modules.casemanager.repositories import CaseManagementRepository
from app.modules.casemanager.util import (
    ActivityType,
    CaseCategory,
    CaseManagerConstant,
    CaseStatus,
    KeyedLock,
    NotificationEvent,
    Severity,
    format_display,
    minutes_between,
    now,
)
from app.modules.casemanager.util.exceptions import (
    CaseManagementException,
    InvalidTransitionException,
    ResourceNotFoundException,
)
from app.settings import Settings

from .content import CaseContentBuilder
from .sla import compute_sla_deadline

log = logging.getLogger(__name__)

SYSTEM = CaseManagerConstant.SYSTEM_ACTOR

# RESOLVED/CLOSED -> OPEN is only reachable through reopen().
ALLOWED_TRANSITIONS: Dict[CaseStatus, frozenset] = {
    CaseStatus.OPEN: frozenset(
        {CaseStatus.ASSIGNED, CaseStatus.IN_PROGRESS, CaseStatus.RESOLVED, CaseStatus.CLOSED}
    ),
    CaseStatus.ASSIGNED: frozenset(
        {CaseStatus.OPEN, CaseStatus.IN_PROGRESS, CaseStatus.RESOLVED, CaseStatus.CLOSED}
    ),
    CaseStatus.IN_PROGRESS: frozenset({CaseStatus.ASSIGNED, CaseStatus.RESOLVED, CaseStatus.CLOSED}),
    CaseStatus.RESOLVED: frozenset({CaseStatus.CLOSED}),
    CaseStatus.CLOSED: frozenset(),
}


def check_transition(current: CaseStatus, target: CaseStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionException(f"Cannot move case from {current.value} to {target.value}")


class CaseLifecycleManager:
    """Owns every write to a case.

    All operations on an existing case run under that case's lock, reload it
    from the repository and write it back with a version check, so concurrent
    writers serialize instead of overwriting each other.
    """

    def __init__(
        self,
        settings: Settings,
        repository: CaseManagementRepository,
        registry: RuleRegistry,
        fanout: NotificationFanout | None = None,
        content: CaseContentBuilder | None = None,
        clock: Callable[[], datetime] = now,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.registry = registry
        self.fanout = fanout
        self.content = content or CaseContentBuilder()
        self._clock = clock
        self._case_locks = KeyedLock()

    # ---- helpers ----------------------------------------------------------
    def _load(self, case_id: int) -> Case:
        case = self.repository.get_case(case_id)
        if case is None:
            raise ResourceNotFoundException("Case", case_id)
        return case

    def _record(
        self,
        case: Case,
        activity_type: ActivityType,
        description: str,
        actor: str,
        field_name: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
    ) -> CaseActivity:
        return self.repository.add_activity(
            CaseActivity(
                case_id=case.id,
                type=activity_type,
                description=description,
                actor=actor,
                timestamp=self._clock(),
                field_name=field_name,
                old_value=None if old_value is None else str(old_value),
                new_value=None if new_value is None else str(new_value),
            )
        )

    def _notify(
        self,
        case: Case,
        event: NotificationEvent,
        assignment: AssignmentInfo | None = None,
        extra_team_ids: Iterable[int] = (),
    ) -> None:
        if self.fanout is not None:
            self.fanout.notify(case, event, assignment, extra_team_ids)

    def describe_assignment(self, assignment: AssignmentInfo) -> str:
        if not assignment.has_assignments():
            return CaseManagerConstant.UNASSIGNED
        names = []
        for user_id in sorted(assignment.user_ids):
            user = self.repository.find_user(user_id)
            names.append(user.name if user else f"User #{user_id}")
        for team_id in sorted(assignment.team_ids):
            team = self.repository.find_team(team_id)
            names.append(f"Team: {team.name}" if team else f"Team #{team_id}")
        return ", ".join(names)

    def _reset_sla(self, case: Case, when: datetime) -> None:
        case.sla_deadline = compute_sla_deadline(case.created_at, case.severity, case.priority)
        if case.sla_breached and case.sla_deadline > when:
            case.sla_breached = False
            case.sla_breached_at = None

    # ---- creation and recurrence -----------------------------------------
    async def create(
        self,
        alert: AlertEvent,
        rule: RuleAssignment | None = None,
        assignment: AssignmentInfo | None = None,
        *,
        rule_uid: str | None = None,
        external_alert_id: str | None = None,
        received_at: datetime | None = None,
    ) -> Case:
        created_at = received_at or self._clock()
        assignment = assignment or AssignmentInfo.empty()
        if rule is not None:
            severity, category = rule.severity, rule.category
        else:
            severity, category = self.content.severity_from_labels(alert), CaseCategory.CUSTOM
        priority = severity.priority

        case = Case(
            case_number=self.repository.next_case_number(created_at),
            title=self.content.title(alert, rule),
            description=self.content.description(alert, rule),
            severity=severity,
            category=category,
            priority=priority,
            created_at=created_at,
            updated_at=created_at,
            assignment=assignment,
            sla_deadline=compute_sla_deadline(created_at, severity, priority),
            alert_fingerprint=alert.fingerprint,
            external_alert_id=external_alert_id,
            rule_uid=rule.rule_uid if rule is not None else rule_uid,
            affected_services=self.content.affected_services(alert),
            tags=self.content.tags(alert, severity, category),
            alert_data=alert.to_alert_data(),
            last_alert_at=created_at,
        )
        if assignment.has_assignments():
            case.status = CaseStatus.ASSIGNED
            case.assigned_at = created_at

        self.repository.insert_case(case)
        self._record(
            case,
            ActivityType.CREATED,
            f"Case created from alert {alert.fingerprint}; owners: {self.describe_assignment(assignment)}",
            SYSTEM,
        )
        log.info(
            "Created case %s (severity=%s, status=%s, rule=%s)",
            case.case_number,
            case.severity.value,
            case.status.value,
            case.rule_uid or "-",
        )
        self._notify(case, NotificationEvent.CASE_CREATED)
        return case

    async def record_duplicate(self, case_id: int, alert: AlertEvent, received_at: datetime | None = None) -> Case:
        when = received_at or self._clock()
        async with self._case_locks.hold(case_id):
            case = self._load(case_id)
            case.occurrence_count += 1
            case.last_alert_at = when
            case.updated_at = when
            self.repository.update_case(case)
            self._record(
                case,
                ActivityType.ALERT_RECEIVED,
                f"Alert {alert.fingerprint} received again (occurrence #{case.occurrence_count})",
                SYSTEM,
            )
        return case

    async def reopen(self, case_id: int, alert: AlertEvent, received_at: datetime | None = None) -> Case:
        when = received_at or self._clock()
        async with self._case_locks.hold(case_id):
            case = self._load(case_id)
            if not case.is_terminal():
                log.info("Case %s is already open, treating recurrence as a duplicate.", case.case_number)
                case.occurrence_count += 1
                case.last_alert_at = when
                case.updated_at = when
                self.repository.update_case(case)
                return case

            previous = case.status
            case.status = CaseStatus.OPEN
            case.resolved_at = None
            case.closed_at = None
            case.closed_by = None
            case.closure_reason = None
            case.resolution_time_minutes = None
            case.reopen_count += 1
            case.occurrence_count += 1
            case.last_alert_at = when
            case.updated_at = when
            self.repository.update_case(case)
            self._record(
                case,
                ActivityType.REOPENED,
                f"Case reopened: alert {alert.fingerprint} fired again",
                SYSTEM,
                field_name="status",
                old_value=previous.value,
                new_value=CaseStatus.OPEN.value,
            )
        log.info("Reopened case %s (reopen #%d)", case.case_number, case.reopen_count)
        self._notify(case, NotificationEvent.CASE_REOPENED)
        return case

    # ---- manual updates ---------------------------------------------------
    async def update_severity_or_priority(
        self,
        case_id: int,
        severity: Severity | None = None,
        priority: int | None = None,
        actor: str = SYSTEM,
    ) -> Case:
        if priority is not None and priority not in CaseManagerConstant.SLA_HOURS_BY_PRIORITY:
            raise ValueError(f"priority must be between 1 and 4, got {priority}")
        async with self._case_locks.hold(case_id):
            case = self._load(case_id)
            changes = []
            if severity is not None and severity != case.severity:
                changes.append(("severity", case.severity.value, severity.value))
                case.severity = severity
            if priority is not None and priority != case.priority:
                changes.append(("priority", case.priority, priority))
                case.priority = priority
            if not changes:
                return case

            when = self._clock()
            old_deadline = case.sla_deadline
            self._reset_sla(case, when)
            case.updated_at = when
            self.repository.update_case(case)
            for field_name, old, new in changes:
                self._record(
                    case,
                    ActivityType.UPDATED,
                    f"{field_name.capitalize()} changed; SLA deadline "
                    f"{format_display(old_deadline)} -> {format_display(case.sla_deadline)}",
                    actor,
                    field_name=field_name,
                    old_value=old,
                    new_value=new,
                )
        return case

    async def update_case(
        self,
        case_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        status: CaseStatus | None = None,
        actor: str = SYSTEM,
    ) -> Case:
        if status == CaseStatus.CLOSED:
            await self.update_case(case_id, title=title, description=description, actor=actor)
            return await self.close(case_id, reason=f"Closed by {actor}", actor=actor)

        event = None
        async with self._case_locks.hold(case_id):
            case = self._load(case_id)
            when = self._clock()
            pending = []
            if title is not None and title != case.title:
                pending.append((ActivityType.UPDATED, "Title updated", "title", case.title, title))
                case.title = title
            if description is not None and description != case.description:
                pending.append((ActivityType.UPDATED, "Description updated", "description", None, None))
                case.description = description
            if status is not None and status != case.status:
                check_transition(case.status, status)
                pending.append(
                    (
                        ActivityType.STATUS_CHANGE,
                        f"Status changed from {case.status.value} to {status.value}",
                        "status",
                        case.status.value,
                        status.value,
                    )
                )
                case.status = status
                if status == CaseStatus.RESOLVED:
                    case.resolved_at = when
                    event = NotificationEvent.CASE_RESOLVED
            if not pending:
                return case
            case.updated_at = when
            self.repository.update_case(case)
            for activity_type, text, field_name, old, new in pending:
                self._record(case, activity_type, text, actor, field_name=field_name, old_value=old, new_value=new)
        if event is not None:
            self._notify(case, event)
        return case

    async def assign(
        self,
        case_id: int,
        user_id: int | None = None,
        team_id: int | None = None,
        replace: bool = True,
        actor: str = SYSTEM,
    ) -> Case:
        if (user_id is None) == (team_id is None):
            raise ValueError("assign needs exactly one of user_id or team_id")

        if user_id is not None:
            user = self.repository.find_user(user_id)
            if user is None:
                raise ResourceNotFoundException("User", user_id)
            delta = AssignmentInfo.of(user_ids=[user_id])
            new_label = user.name
        else:
            team = self.repository.find_team(team_id)
            if team is None:
                raise ResourceNotFoundException("Team", team_id)
            delta = AssignmentInfo.of(team_ids=[team_id])
            new_label = f"Team: {team.name}"

        async with self._case_locks.hold(case_id):
            case = self._load(case_id)
            if case.status == CaseStatus.CLOSED:
                raise InvalidTransitionException(f"Case {case.case_number} is closed and cannot be assigned")
            when = self._clock()
            old_label = self.describe_assignment(case.assignment)
            case.assignment = delta if replace else case.assignment.merge(delta)
            case.assigned_at = when
            if case.status == CaseStatus.OPEN:
                case.status = CaseStatus.ASSIGNED
            case.updated_at = when
            self.repository.update_case(case)
            self._record(
                case,
                ActivityType.ASSIGNED,
                f"Case assigned to {new_label}",
                actor,
                field_name="assigned_to",
                old_value=old_label,
                new_value=new_label,
            )
        log.info("Case %s assigned to %s by %s", case.case_number, new_label, actor)
        self._notify(case, NotificationEvent.CASE_ASSIGNED, delta)
        return case

    async def escalate(self, case_id: int, reason: str, actor: str = SYSTEM) -> Case:
        async with self._case_locks.hold(case_id):
            case = self._load(case_id)
            if case.is_terminal():
                raise InvalidTransitionException(f"Case {case.case_number} is {case.status.value}, cannot escalate")
            when = self._clock()
            old_priority = case.priority
            base = case.priority if case.priority is not None else case.severity.priority
            case.priority = max(1, base - 1)
            self._reset_sla(case, when)

            added_team = None
            rule = self.registry.lookup_rule(case.rule_uid)
            if rule is not None and rule.escalation_team_id is not None:
                if not case.assignment.is_team_assigned(rule.escalation_team_id):
                    added_team = rule.escalation_team_id
                    case.assignment = case.assignment.with_team(added_team)
                    case.assigned_at = when
                    if case.status == CaseStatus.OPEN:
                        case.status = CaseStatus.ASSIGNED
            case.updated_at = when
            self.repository.update_case(case)
            self._record(
                case,
                ActivityType.ESCALATED,
                f"Case escalated: {reason}",
                actor,
                field_name="priority",
                old_value=old_priority,
                new_value=case.priority,
            )
        log.info("Case %s escalated to priority %s", case.case_number, case.priority)
        if added_team is not None:
            self._notify(case, NotificationEvent.CASE_ASSIGNED, AssignmentInfo.of(team_ids=[added_team]))
        return case

    # ---- resolution -------------------------------------------------------
    def _apply_close(
        self,
        case: Case,
        reason: str,
        root_cause: str | None,
        resolution_actions: str | None,
        actor: str,
        when: datetime,
    ) -> CaseStatus:
        check_transition(case.status, CaseStatus.CLOSED)
        previous = case.status
        case.status = CaseStatus.CLOSED
        case.closed_at = when
        case.closed_by = actor
        case.closure_reason = reason
        if root_cause is not None:
            case.root_cause = root_cause
        if resolution_actions is not None:
            case.resolution_actions = resolution_actions
        case.resolution_time_minutes = minutes_between(case.created_at, when)
        case.updated_at = when
        return previous

    async def close(
        self,
        case_id: int,
        reason: str,
        root_cause: str | None = None,
        resolution_actions: str | None = None,
        actor: str = SYSTEM,
    ) -> Case:
        async with self._case_locks.hold(case_id):
            case = self._load(case_id)
            previous = self._apply_close(case, reason, root_cause, resolution_actions, actor, self._clock())
            self.repository.update_case(case)
            self._record(
                case,
                ActivityType.CLOSED,
                f"Case closed: {reason}",
                actor,
                field_name="status",
                old_value=previous.value,
                new_value=CaseStatus.CLOSED.value,
            )
        log.info("Closed case %s after %s minutes", case.case_number, case.resolution_time_minutes)
        self._notify(case, NotificationEvent.CASE_CLOSED)
        return case

    async def resolve_from_external_signal(self, fingerprint: str) -> Case | None:
        """Resolve every open case of ``fingerprint``; returns the newest one touched."""
        resolved = None
        for candidate in self.repository.find_open_cases_by_fingerprint(fingerprint):
            case = await self._resolve_one(candidate.id)
            if case is not None:
                resolved = case
        return resolved

    async def _resolve_one(self, case_id: int) -> Case | None:
        async with self._case_locks.hold(case_id):
            case = self._load(case_id)
            if not case.is_open():
                return None
            when = self._clock()
            previous = case.status
            case.status = CaseStatus.RESOLVED
            case.resolved_at = when
            case.updated_at = when
            auto_close = self.settings.auto_close_resolved
            if auto_close:
                self._apply_close(case, CaseManagerConstant.AUTO_CLOSE_REASON, None, None, SYSTEM, when)
            self.repository.update_case(case)
            self._record(
                case,
                ActivityType.RESOLVED,
                "Alert resolved in monitoring system",
                SYSTEM,
                field_name="status",
                old_value=previous.value,
                new_value=CaseStatus.RESOLVED.value,
            )
            if auto_close:
                self._record(
                    case,
                    ActivityType.CLOSED,
                    CaseManagerConstant.AUTO_CLOSE_REASON,
                    SYSTEM,
                    field_name="status",
                    old_value=CaseStatus.RESOLVED.value,
                    new_value=CaseStatus.CLOSED.value,
                )
        log.info("Case %s %s by monitoring system", case.case_number, "closed" if auto_close else "resolved")
        self._notify(case, NotificationEvent.CASE_CLOSED if auto_close else NotificationEvent.CASE_RESOLVED)
        return case

    # ---- SLA --------------------------------------------------------------
    async def sla_breach_sweep(self, when: datetime | None = None) -> List[Case]:
        """Flag overdue open cases and return only the ones flagged by this run."""
        when = when or self._clock()
        breached: List[Case] = []
        for candidate in self.repository.find_cases_due_for_sla(when):
            async with self._case_locks.hold(candidate.id):
                # the conditional update re-checks status, so a close that won the lock wins
                if not self.repository.mark_sla_breached(candidate.id, when):
                    continue
                case = self._load(candidate.id)
                self._record(
                    case,
                    ActivityType.SLA_BREACHED,
                    f"SLA deadline {format_display(case.sla_deadline)} breached",
                    SYSTEM,
                )
                breached.append(case)
        if breached:
            log.warning("SLA sweep flagged %d case(s): %s", len(breached), [c.case_number for c in breached])
        return breached

    # ---- queries and bulk -------------------------------------------------
    def get_case(self, case_id: int) -> Case:
        return self._load(case_id)

    def list_activities(self, case_id: int) -> List[CaseActivity]:
        return self.repository.list_activities(case_id)

    def list_unassigned_cases(self) -> List[Case]:
        return self.repository.list_unassigned_cases()

    async def bulk_assign(self, case_ids: Iterable[int], user_id: int, actor: str = SYSTEM) -> Dict[str, Any]:
        succeeded: List[int] = []
        failed: Dict[int, str] = {}
        for case_id in case_ids:
            try:
                await self.assign(case_id, user_id=user_id, actor=actor)
                succeeded.append(case_id)
            except (CaseManagementException, ValueError) as exc:
                failed[case_id] = str(exc)
        return {"succeeded": succeeded, "failed": failed}

    async def bulk_close(self, case_ids: Iterable[int], reason: str, actor: str = SYSTEM) -> Dict[str, Any]:
        succeeded: List[int] = []
        failed: Dict[int, str] = {}
        for case_id in case_ids:
            try:
                await self.close(case_id, reason, actor=actor)
                succeeded.append(case_id)
            except CaseManagementException as exc:
                failed[case_id] = str(exc)
        return {"succeeded": succeeded, "failed": failed}
