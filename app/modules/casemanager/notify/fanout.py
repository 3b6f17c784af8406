"""Notification fan-out: one notification per distinct recipient per event."""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Set

from app.modules.casemanager.domain import AssignmentInfo, Case, Delivery, Notification, User
from app.modules.casemanager.provider import NotificationProvider, ProviderRegistry
from app.modules.casemanager.repositories import CaseManagementRepository
from app.modules.casemanager.util import (
    CaseManagerConstant,
    NotificationChannel,
    NotificationEvent,
    format_iso,
    now,
)
from app.modules.casemanager.util.exceptions import NotificationSendException
from app.settings import Settings

from .templates import NotificationTemplates

log = logging.getLogger(__name__)


class NotificationFanout:
    """Delivers case events to owners without ever failing the caller.

    ``notify`` schedules the work on the running loop and returns at once.
    ``deliver`` is the awaited body and is what tests and the drain use.
    """

    def __init__(
        self,
        settings: Settings,
        repository: CaseManagementRepository,
        providers: ProviderRegistry | None = None,
        templates: NotificationTemplates | None = None,
        clock: Callable[[], datetime] = now,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.providers = providers or ProviderRegistry.default(settings)
        self.templates = templates or NotificationTemplates()
        self._clock = clock
        self._pending: Set[asyncio.Task] = set()

    def notify(
        self,
        case: Case,
        event: NotificationEvent,
        assignment: AssignmentInfo | None = None,
        extra_team_ids: Iterable[int] = (),
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.warning("No running event loop, dropping %s notification for %s", event.value, case.case_number)
            return
        snapshot = copy.deepcopy(case)
        task = loop.create_task(
            self._deliver_safely(snapshot, event, assignment or snapshot.assignment, tuple(extra_team_ids))
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver_safely(
        self,
        case: Case,
        event: NotificationEvent,
        assignment: AssignmentInfo,
        extra_team_ids: Iterable[int],
    ) -> None:
        try:
            await self.deliver(case, event, assignment, extra_team_ids)
        except Exception:  # noqa: BLE001
            log.exception("Fan-out of %s for case %s failed", event.value, case.case_number)

    def resolve_recipients(self, assignment: AssignmentInfo, extra_team_ids: Iterable[int] = ()) -> List[User]:
        recipients: Dict[int, User] = {}
        for user_id in sorted(assignment.user_ids):
            user = self.repository.find_user(user_id)
            if user is not None and user.active:
                recipients.setdefault(user.id, user)
        team_ids = sorted(set(assignment.team_ids) | set(extra_team_ids))
        for team_id in team_ids:
            team = self.repository.find_team(team_id)
            if team is None or not team.active:
                continue
            for member in self.repository.team_members(team_id):
                if member.active:
                    recipients.setdefault(member.id, member)
        return list(recipients.values())

    async def deliver(
        self,
        case: Case,
        event: NotificationEvent,
        assignment: AssignmentInfo | None = None,
        extra_team_ids: Iterable[int] = (),
    ) -> List[Notification]:
        recipients = self.resolve_recipients(assignment or case.assignment, extra_team_ids)
        if not recipients:
            return [await self._deliver_admin(case, event)]

        sent = []
        for user in recipients:
            try:
                sent.append(await self._deliver_user(case, event, user))
            except Exception:  # noqa: BLE001
                log.exception("Notification for user %s on case %s failed", user.id, case.case_number)
        return sent

    def _payload(self, case: Case, event: NotificationEvent) -> Dict[str, Any]:
        return {
            "eventType": event.value,
            "caseId": case.id,
            "caseNumber": case.case_number,
            "severity": case.severity.value,
            "priority": case.priority,
            "title": case.title,
            "slaDeadline": format_iso(case.sla_deadline),
        }

    def _transports(self) -> List[NotificationProvider]:
        return self.providers.enabled(self.settings.notification_channels)

    async def _deliver_user(self, case: Case, event: NotificationEvent, user: User) -> Notification:
        subject, message = self.templates.render(case, event, user.name)
        delivery = Delivery(
            event=event,
            subject=subject,
            message=message,
            payload=self._payload(case, event),
            realtime_event=event.realtime_event,
            user=user,
            email=user.email,
        )
        notification = Notification(
            recipient=user.login or str(user.id),
            recipient_user_id=user.id,
            channel=NotificationChannel.REALTIME,
            type=event,
            subject=subject,
            message=message,
            related_case_id=case.id,
            created_at=self._clock(),
        )
        return await self._push(notification, delivery)

    async def _deliver_admin(self, case: Case, event: NotificationEvent) -> Notification:
        channel_name = self.settings.admin_channel
        subject, message = self.templates.render(case, event, channel_name, admin=True)
        realtime_event = (
            CaseManagerConstant.ADMIN_UNASSIGNED_EVENT
            if event == NotificationEvent.CASE_CREATED
            else event.realtime_event
        )
        delivery = Delivery(
            event=event,
            subject=subject,
            message=message,
            payload=self._payload(case, event),
            realtime_event=realtime_event,
            channel_name=channel_name,
            email=self.settings.admin_email,
        )
        notification = Notification(
            recipient=channel_name,
            channel=NotificationChannel.ADMIN,
            type=event,
            subject=subject,
            message=message,
            related_case_id=case.id,
            created_at=self._clock(),
        )
        log.info("Case %s has no owners, routing %s to admin channel %s", case.case_number, event.value, channel_name)
        return await self._push(notification, delivery)

    async def _push(self, notification: Notification, delivery: Delivery) -> Notification:
        outcomes: Dict[str, str] = {}
        errors: List[str] = []
        for provider in self._transports():
            name = provider.channel.value
            if not provider.accepts(delivery):
                outcomes[name] = "SKIPPED"
                continue
            try:
                await provider.send(delivery)
                outcomes[name] = "SENT"
            except NotificationSendException as exc:
                log.warning("%s delivery to %s failed: %s", name, delivery.target or delivery.email, exc)
                outcomes[name] = "FAILED"
                errors.append(f"{name}: {exc}")
            except Exception as exc:  # noqa: BLE001
                log.exception("Unexpected %s provider error for %s", name, delivery.target or delivery.email)
                outcomes[name] = "FAILED"
                errors.append(f"{name}: {exc}")

        if notification.channel != NotificationChannel.ADMIN:
            attempted = [name for name, outcome in outcomes.items() if outcome != "SKIPPED"]
            if attempted:
                notification.channel = NotificationChannel(attempted[0])

        notification.metadata = {"transports": outcomes, "event": delivery.payload}
        if errors:
            notification.mark_failed("; ".join(errors))
            # a partial delivery still records when it went out
            if "SENT" in outcomes.values():
                notification.sent_at = self._clock()
        else:
            notification.mark_sent(self._clock())

        try:
            self.repository.save_notification(notification)
        except Exception:  # noqa: BLE001
            log.exception("Unable to persist %s notification for %s", notification.type.value, notification.recipient)
        return notification
