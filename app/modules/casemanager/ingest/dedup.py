"""Duplicate detection and per-fingerprint serialization."""

from __future__ import annotations

import enum
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterator, Callable

from app.modules.casemanager.domain import Case
from app.modules.casemanager.repositories import CaseManagementRepository
from app.modules.casemanager.util import KeyedLock, now


class DedupAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    REOPEN = "REOPEN"


@dataclass(frozen=True)
class DedupDecision:
    action: DedupAction
    case: Case | None = None


class Deduplicator:
    """Finds the case an incoming fingerprint belongs to.

    ``classify`` must run inside ``guard`` for the same fingerprint, otherwise
    two deliveries can both decide CREATE.
    """

    def __init__(
        self,
        repository: CaseManagementRepository,
        window_minutes: int = 5,
        clock: Callable[[], datetime] = now,
    ) -> None:
        self.repository = repository
        self.window = timedelta(minutes=window_minutes)
        self._clock = clock
        self._locks = KeyedLock()

    def _within_window(self, case: Case, when: datetime) -> bool:
        last_seen = case.last_alert_at or case.created_at
        return when - last_seen <= self.window

    def is_duplicate(self, fingerprint: str, when: datetime | None = None) -> bool:
        when = when or self._clock()
        case = self.repository.find_case_by_fingerprint(fingerprint)
        return case is not None and not case.is_terminal() and self._within_window(case, when)

    def classify(self, fingerprint: str, when: datetime | None = None) -> DedupDecision:
        when = when or self._clock()
        latest = self.repository.find_case_by_fingerprint(fingerprint)
        if latest is None:
            return DedupDecision(DedupAction.CREATE)
        if latest.is_terminal():
            return DedupDecision(DedupAction.REOPEN, latest)
        if self._within_window(latest, when):
            return DedupDecision(DedupAction.UPDATE, latest)
        return DedupDecision(DedupAction.CREATE)

    @asynccontextmanager
    async def guard(self, fingerprint: str) -> AsyncIterator[None]:
        async with self._locks.hold(fingerprint):
            with self.repository.fingerprint_lock(fingerprint):
                yield
