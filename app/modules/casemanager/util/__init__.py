"""Utility modules for case management."""

from .constants import AlertLabels, CaseManagerConstant
from .enums import (
    ActivityType,
    AlertStatus,
    AssignmentStrategy,
    CaseCategory,
    CaseStatus,
    IngestOutcome,
    NotificationChannel,
    NotificationEvent,
    NotificationStatus,
    Severity,
    UserRole,
)
from .locks import KeyedLock
from .utils import (
    epoch_millis,
    format_compact,
    format_display,
    format_iso,
    minutes_between,
    now,
    parse_iso_datetime,
    truncate,
)

__all__ = [
    "AlertLabels",
    "CaseManagerConstant",
    "ActivityType",
    "AlertStatus",
    "AssignmentStrategy",
    "CaseCategory",
    "CaseStatus",
    "IngestOutcome",
    "NotificationChannel",
    "NotificationEvent",
    "NotificationStatus",
    "Severity",
    "UserRole",
    "KeyedLock",
    "epoch_millis",
    "format_compact",
    "format_display",
    "format_iso",
    "minutes_between",
    "now",
    "parse_iso_datetime",
    "truncate",
]
