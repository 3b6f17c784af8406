"""Domain exports for case management."""

from .alert_event import AlertEvent, WebhookContext, split_payload
from .alert_record import AlertRecord
from .assignment_info import AssignmentInfo
from .case import Case
from .case_activity import CaseActivity
from .directory import Team, User
from .notification import Delivery, Notification
from .results import BatchResult, IngestResult, SyncReport
from .rule_assignment import RuleAssignment

__all__ = [
    "AlertEvent",
    "AlertRecord",
    "AssignmentInfo",
    "BatchResult",
    "Case",
    "CaseActivity",
    "Delivery",
    "IngestResult",
    "Notification",
    "RuleAssignment",
    "SyncReport",
    "Team",
    "User",
    "WebhookContext",
    "split_payload",
]
