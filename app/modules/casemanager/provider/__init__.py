"""Provider exports."""

from .base import BaseProvider
from .email import EmailProvider
from .realtime import RealtimeProvider
from .registry import LoggingProvider, NotificationProvider, ProviderRegistry

__all__ = [
    "BaseProvider",
    "EmailProvider",
    "LoggingProvider",
    "NotificationProvider",
    "ProviderRegistry",
    "RealtimeProvider",
]
