"""Notification audit record and the per-recipient delivery bean."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from app.modules.casemanager.domain.directory import User
from app.modules.casemanager.util import (
    NotificationChannel,
    NotificationEvent,
    NotificationStatus,
)


@dataclass
class Notification:
    recipient: str
    channel: NotificationChannel
    type: NotificationEvent
    subject: str
    message: str
    created_at: datetime
    recipient_user_id: int | None = None
    status: NotificationStatus = NotificationStatus.PENDING
    related_case_id: int | None = None
    sent_at: datetime | None = None
    error_message: str | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    def mark_sent(self, when: datetime) -> None:
        self.status = NotificationStatus.SENT
        self.sent_at = when
        self.error_message = None

    def mark_failed(self, error: str) -> None:
        self.status = NotificationStatus.FAILED
        self.error_message = error


@dataclass
class Delivery:
    """One message for one recipient, handed to each transport."""

    event: NotificationEvent
    subject: str
    message: str
    payload: Dict[str, Any]
    realtime_event: str = ""
    user: User | None = None
    channel_name: str | None = None
    email: str | None = None

    @property
    def target(self) -> str:
        if self.user is not None:
            return f"user.{self.user.id}"
        return self.channel_name or ""
