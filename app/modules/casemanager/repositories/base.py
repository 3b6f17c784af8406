"""Repository contract for case management persistence."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Sequence

from app.modules.casemanager.domain import (
    AlertRecord,
    Case,
    CaseActivity,
    Notification,
    RuleAssignment,
    Team,
    User,
)
from app.modules.casemanager.util import NotificationStatus


class CaseManagementRepository:
    # ---- alert audit ------------------------------------------------------
    def save_alert_record(self, record: AlertRecord) -> AlertRecord:
        raise NotImplementedError

    def update_alert_record(self, record: AlertRecord) -> None:
        raise NotImplementedError

    # ---- cases ------------------------------------------------------------
    def next_case_number(self, when: datetime) -> str:
        raise NotImplementedError

    def insert_case(self, case: Case) -> Case:
        raise NotImplementedError

    def update_case(self, case: Case) -> Case:
        """Persist ``case`` if its version is current, bumping the version.

        Raises CaseConflictException when the stored version differs.
        """
        raise NotImplementedError

    def get_case(self, case_id: int) -> Case | None:
        raise NotImplementedError

    def find_case_by_fingerprint(self, fingerprint: str) -> Case | None:
        """Latest case created for ``fingerprint``."""
        raise NotImplementedError

    def find_open_cases_by_fingerprint(self, fingerprint: str) -> List[Case]:
        """Non-terminal cases for ``fingerprint``, oldest first."""
        raise NotImplementedError

    def find_cases_due_for_sla(self, when: datetime) -> List[Case]:
        raise NotImplementedError

    def mark_sla_breached(self, case_id: int, when: datetime) -> bool:
        """Flag the case only if it is non-terminal, unflagged and overdue."""
        raise NotImplementedError

    def list_unassigned_cases(self) -> List[Case]:
        raise NotImplementedError

    def count_open_cases_by_user(self, user_ids: Iterable[int]) -> Dict[int, int]:
        raise NotImplementedError

    @contextmanager
    def fingerprint_lock(self, fingerprint: str) -> Iterator[None]:
        yield

    # ---- activities -------------------------------------------------------
    def add_activity(self, activity: CaseActivity) -> CaseActivity:
        raise NotImplementedError

    def list_activities(self, case_id: int) -> List[CaseActivity]:
        raise NotImplementedError

    # ---- notifications ----------------------------------------------------
    def save_notification(self, notification: Notification) -> Notification:
        raise NotImplementedError

    def update_notification_status(
        self, notification_id: int, status: NotificationStatus, error: str | None = None
    ) -> None:
        raise NotImplementedError

    def list_notifications(self, case_id: int | None = None) -> List[Notification]:
        raise NotImplementedError

    # ---- rules ------------------------------------------------------------
    def get_rule(self, rule_uid: str) -> RuleAssignment | None:
        raise NotImplementedError

    def list_rules(self) -> Sequence[RuleAssignment]:
        raise NotImplementedError

    def save_rule(self, rule: RuleAssignment) -> RuleAssignment:
        raise NotImplementedError

    def advance_rotation(self, rule_uid: str) -> int:
        """Atomically increment the rule's rotation counter and return the value before it."""
        raise NotImplementedError

    # ---- directory --------------------------------------------------------
    def find_user(self, user_id: int) -> User | None:
        raise NotImplementedError

    def find_team(self, team_id: int) -> Team | None:
        raise NotImplementedError

    def team_members(self, team_id: int) -> List[User]:
        raise NotImplementedError

    def team_lead(self, team_id: int) -> User | None:
        raise NotImplementedError

    def find_users_with_fewest_open_cases(self, user_ids: Iterable[int]) -> List[User]:
        """Active users from ``user_ids`` ordered by open case count, then id."""
        ids = list(user_ids)
        counts = self.count_open_cases_by_user(ids)
        users = [u for u in (self.find_user(i) for i in ids) if u is not None and u.active]
        return sorted(users, key=lambda u: (counts.get(u.id, 0), u.id))
