"""In-memory repository implementation."""

from __future__ import annotations

import copy
import itertools
import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Sequence

from app.modules.casemanager.domain import (
    AlertRecord,
    Case,
    CaseActivity,
    Notification,
    RuleAssignment,
    Team,
    User,
)
from app.modules.casemanager.repositories.base import CaseManagementRepository
from app.modules.casemanager.util import CaseManagerConstant, NotificationStatus
from app.modules.casemanager.util.exceptions import CaseConflictException, ResourceNotFoundException


class InMemoryCaseManagementRepository(CaseManagementRepository):
    """Dict-backed storage so the service runs without a database.

    Stored objects are copied on the way in and out so callers never share
    state with the store, which keeps the version check meaningful.
    """

    def __init__(self) -> None:
        self._mutex = threading.RLock()
        self._ids = defaultdict(lambda: itertools.count(1))
        self._case_seq: Dict[int, int] = defaultdict(int)
        self.alert_records: Dict[int, AlertRecord] = {}
        self.cases: Dict[int, Case] = {}
        self.activities: List[CaseActivity] = []
        self.notifications: Dict[int, Notification] = {}
        self.rules: Dict[str, RuleAssignment] = {}
        self.users: Dict[int, User] = {}
        self.teams: Dict[int, Team] = {}

    def _next_id(self, kind: str) -> int:
        return next(self._ids[kind])

    # ---- directory seeding -----------------------------------------------
    def add_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    def add_team(self, team: Team) -> Team:
        self.teams[team.id] = team
        return team

    # ---- alert audit ------------------------------------------------------
    def save_alert_record(self, record: AlertRecord) -> AlertRecord:
        with self._mutex:
            record.id = self._next_id("alert_record")
            self.alert_records[record.id] = copy.deepcopy(record)
        return record

    def update_alert_record(self, record: AlertRecord) -> None:
        with self._mutex:
            if record.id is not None:
                self.alert_records[record.id] = copy.deepcopy(record)

    # ---- cases ------------------------------------------------------------
    def next_case_number(self, when: datetime) -> str:
        with self._mutex:
            self._case_seq[when.year] += 1
            seq = self._case_seq[when.year]
        return f"{CaseManagerConstant.CASE_NUMBER_PREFIX}-{when.year}-{seq:05d}"

    def insert_case(self, case: Case) -> Case:
        with self._mutex:
            case.id = self._next_id("case")
            case.version = 1
            self.cases[case.id] = copy.deepcopy(case)
        return case

    def update_case(self, case: Case) -> Case:
        with self._mutex:
            stored = self.cases.get(case.id)
            if stored is None:
                raise ResourceNotFoundException("Case", case.id)
            if stored.version != case.version:
                raise CaseConflictException(
                    f"Case {case.case_number} changed concurrently "
                    f"(expected version {case.version}, found {stored.version})"
                )
            case.version += 1
            self.cases[case.id] = copy.deepcopy(case)
        return case

    def get_case(self, case_id: int) -> Case | None:
        stored = self.cases.get(case_id)
        return copy.deepcopy(stored) if stored else None

    def find_case_by_fingerprint(self, fingerprint: str) -> Case | None:
        matches = [c for c in self.cases.values() if c.alert_fingerprint == fingerprint]
        if not matches:
            return None
        return copy.deepcopy(max(matches, key=lambda c: (c.created_at, c.id)))

    def find_open_cases_by_fingerprint(self, fingerprint: str) -> List[Case]:
        matches = [c for c in self.cases.values() if c.alert_fingerprint == fingerprint and c.is_open()]
        return [copy.deepcopy(c) for c in sorted(matches, key=lambda c: (c.created_at, c.id))]

    def find_cases_due_for_sla(self, when: datetime) -> List[Case]:
        return [
            copy.deepcopy(c)
            for c in sorted(self.cases.values(), key=lambda c: c.id)
            if not c.is_terminal() and not c.sla_breached and c.sla_deadline and c.sla_deadline < when
        ]

    def mark_sla_breached(self, case_id: int, when: datetime) -> bool:
        with self._mutex:
            stored = self.cases.get(case_id)
            if (
                stored is None
                or stored.is_terminal()
                or stored.sla_breached
                or not stored.sla_deadline
                or stored.sla_deadline >= when
            ):
                return False
            stored.sla_breached = True
            stored.sla_breached_at = when
            stored.updated_at = when
            stored.version += 1
            return True

    def list_unassigned_cases(self) -> List[Case]:
        return [
            copy.deepcopy(c)
            for c in sorted(self.cases.values(), key=lambda c: c.id)
            if c.is_open() and not c.assignment.has_assignments()
        ]

    def count_open_cases_by_user(self, user_ids: Iterable[int]) -> Dict[int, int]:
        counts = {uid: 0 for uid in user_ids}
        for case in self.cases.values():
            if not case.is_open():
                continue
            for uid in case.assignment.user_ids:
                if uid in counts:
                    counts[uid] += 1
        return counts

    # ---- activities -------------------------------------------------------
    def add_activity(self, activity: CaseActivity) -> CaseActivity:
        with self._mutex:
            stored = CaseActivity(
                case_id=activity.case_id,
                type=activity.type,
                description=activity.description,
                actor=activity.actor,
                timestamp=activity.timestamp,
                field_name=activity.field_name,
                old_value=activity.old_value,
                new_value=activity.new_value,
                id=self._next_id("activity"),
            )
            self.activities.append(stored)
        return stored

    def list_activities(self, case_id: int) -> List[CaseActivity]:
        return [a for a in self.activities if a.case_id == case_id]

    # ---- notifications ----------------------------------------------------
    def save_notification(self, notification: Notification) -> Notification:
        with self._mutex:
            notification.id = self._next_id("notification")
            self.notifications[notification.id] = copy.deepcopy(notification)
        return notification

    def update_notification_status(
        self, notification_id: int, status: NotificationStatus, error: str | None = None
    ) -> None:
        stored = self.notifications.get(notification_id)
        if stored is None:
            raise ResourceNotFoundException("Notification", notification_id)
        stored.status = status
        stored.error_message = error

    def list_notifications(self, case_id: int | None = None) -> List[Notification]:
        return [
            copy.deepcopy(n)
            for n in self.notifications.values()
            if case_id is None or n.related_case_id == case_id
        ]

    # ---- rules ------------------------------------------------------------
    def get_rule(self, rule_uid: str) -> RuleAssignment | None:
        stored = self.rules.get(rule_uid)
        return copy.deepcopy(stored) if stored else None

    def list_rules(self) -> Sequence[RuleAssignment]:
        return [copy.deepcopy(r) for r in self.rules.values()]

    def save_rule(self, rule: RuleAssignment) -> RuleAssignment:
        with self._mutex:
            existing = self.rules.get(rule.rule_uid)
            if existing is not None:
                rule.id = existing.id
                # the counter is only moved by advance_rotation
                rule.rotation_index = existing.rotation_index
            elif rule.id is None:
                rule.id = self._next_id("rule")
            self.rules[rule.rule_uid] = copy.deepcopy(rule)
        return rule

    def advance_rotation(self, rule_uid: str) -> int:
        with self._mutex:
            stored = self.rules.get(rule_uid)
            if stored is None:
                raise ResourceNotFoundException("RuleAssignment", rule_uid)
            current = stored.rotation_index
            stored.rotation_index = current + 1
            return current

    # ---- directory --------------------------------------------------------
    def find_user(self, user_id: int) -> User | None:
        return self.users.get(user_id)

    def find_team(self, team_id: int) -> Team | None:
        return self.teams.get(team_id)

    def team_members(self, team_id: int) -> List[User]:
        team = self.teams.get(team_id)
        if team is None:
            return []
        return [self.users[uid] for uid in sorted(team.member_ids) if uid in self.users]

    def team_lead(self, team_id: int) -> User | None:
        team = self.teams.get(team_id)
        if team is None or team.lead_id is None:
            return None
        return self.users.get(team.lead_id)
