"""Notification fan-out."""

from .fanout import NotificationFanout
from .templates import NotificationTemplates

__all__ = ["NotificationFanout", "NotificationTemplates"]
