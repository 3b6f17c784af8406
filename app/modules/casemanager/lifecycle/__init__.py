"""Case lifecycle."""

from .content import CaseContentBuilder
from .manager import ALLOWED_TRANSITIONS, CaseLifecycleManager, check_transition
from .sla import compute_sla_deadline, sla_hours

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CaseContentBuilder",
    "CaseLifecycleManager",
    "check_transition",
    "compute_sla_deadline",
    "sla_hours",
]
