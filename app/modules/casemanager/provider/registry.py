"""Transport registry."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Protocol

import httpx

from app.modules.casemanager.domain import Delivery
from app.modules.casemanager.util import NotificationChannel
from app.settings import Settings

from .email import EmailProvider
from .realtime import RealtimeProvider

log = logging.getLogger(__name__)


class NotificationProvider(Protocol):
    channel: NotificationChannel

    def accepts(self, delivery: Delivery) -> bool:
        ...

    async def send(self, delivery: Delivery) -> None:
        ...

    async def aclose(self) -> None:
        ...


class LoggingProvider:
    """Default provider that only logs the outgoing message."""

    def __init__(self, channel: NotificationChannel) -> None:
        self.channel = channel

    def accepts(self, delivery: Delivery) -> bool:
        return self.channel != NotificationChannel.EMAIL or bool(delivery.email)

    async def send(self, delivery: Delivery) -> None:
        log.info(
            "[%s] %s -> %s: %s",
            self.channel.name,
            delivery.event.value,
            delivery.target or delivery.email,
            delivery.subject,
        )

    async def aclose(self) -> None:
        return None


class ProviderRegistry:
    def __init__(self) -> None:
        self._providers: Dict[NotificationChannel, NotificationProvider] = {}

    def register(self, provider: NotificationProvider) -> None:
        self._providers[provider.channel] = provider

    def get(self, channel: NotificationChannel) -> NotificationProvider:
        if channel not in self._providers:
            self._providers[channel] = LoggingProvider(channel)
        return self._providers[channel]

    def enabled(self, channels: Iterable[str]) -> List[NotificationProvider]:
        providers = []
        for name in channels:
            try:
                channel = NotificationChannel(name.upper())
            except ValueError:
                log.warning("Unknown notification channel %r ignored", name)
                continue
            providers.append(self.get(channel))
        return providers

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()

    @classmethod
    def default(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> "ProviderRegistry":
        registry = cls()
        if settings.email_enabled:
            registry.register(EmailProvider(settings))
        if settings.realtime_push_url:
            registry.register(RealtimeProvider(settings.realtime_push_url, client))
        return registry
