"""Enumerations for the case management module."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    LOW = ("LOW", 4, 72)
    MEDIUM = ("MEDIUM", 3, 24)
    HIGH = ("HIGH", 2, 8)
    CRITICAL = ("CRITICAL", 1, 4)

    def __new__(cls, level: str, priority: int, sla_hours: int) -> "Severity":  # type: ignore[override]
        obj = str.__new__(cls, level)
        obj._value_ = level
        obj.priority = priority
        obj.sla_hours = sla_hours
        return obj  # type: ignore[return-value]

    priority: int
    sla_hours: int

    @classmethod
    def parse(cls, value: str | None) -> "Severity | None":
        if not value:
            return None
        normalized = str(value).strip().upper()
        aliases = {"WARNING": "MEDIUM", "WARN": "MEDIUM", "INFO": "LOW", "ERROR": "HIGH", "FATAL": "CRITICAL"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None


class CaseCategory(str, Enum):
    REVENUE_LOSS = "REVENUE_LOSS"
    NETWORK_ISSUE = "NETWORK_ISSUE"
    QUALITY_ISSUE = "QUALITY_ISSUE"
    FRAUD_ALERT = "FRAUD_ALERT"
    OPERATIONAL = "OPERATIONAL"
    CUSTOM = "CUSTOM"


class AssignmentStrategy(str, Enum):
    MANUAL = "MANUAL"
    ROUND_ROBIN = "ROUND_ROBIN"
    LOAD_BASED = "LOAD_BASED"
    TEAM_BASED = "TEAM_BASED"


class CaseStatus(str, Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    @property
    def is_terminal(self) -> bool:
        return self in (CaseStatus.RESOLVED, CaseStatus.CLOSED)


class ActivityType(str, Enum):
    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    UPDATED = "UPDATED"
    STATUS_CHANGE = "STATUS_CHANGE"
    ALERT_RECEIVED = "ALERT_RECEIVED"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"
    ESCALATED = "ESCALATED"
    SLA_BREACHED = "SLA_BREACHED"


class NotificationEvent(str, Enum):
    CASE_CREATED = ("CASE_CREATED", "case.created")
    CASE_ASSIGNED = ("CASE_ASSIGNED", "case.assigned")
    CASE_REOPENED = ("CASE_REOPENED", "case.reopened")
    SLA_BREACH = ("SLA_BREACH", "case.sla-breach")
    CASE_RESOLVED = ("CASE_RESOLVED", "case.resolved")
    CASE_CLOSED = ("CASE_CLOSED", "case.closed")

    def __new__(cls, name: str, realtime_event: str) -> "NotificationEvent":  # type: ignore[override]
        obj = str.__new__(cls, name)
        obj._value_ = name
        obj.realtime_event = realtime_event
        return obj  # type: ignore[return-value]

    realtime_event: str


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    REALTIME = "REALTIME"
    ADMIN = "ADMIN"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class AlertStatus(str, Enum):
    FIRING = "firing"
    RESOLVED = "resolved"


class IngestOutcome(str, Enum):
    CREATED = "CREATED"
    DUPLICATE = "DUPLICATE"
    REOPENED = "REOPENED"
    RESOLVED = "RESOLVED"
    IGNORED = "IGNORED"
    FAILED = "FAILED"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    ANALYST = "ANALYST"
    VIEWER = "VIEWER"
