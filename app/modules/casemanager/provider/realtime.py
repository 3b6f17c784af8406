"""Real-time push provider that forwards events to a push gateway over HTTP."""

from __future__ import annotations

import logging

import httpx

from app.modules.casemanager.domain import Delivery
from app.modules.casemanager.provider.base import BaseProvider
from app.modules.casemanager.util import NotificationChannel
from app.modules.casemanager.util.exceptions import NotificationSendException

log = logging.getLogger(__name__)


class RealtimeProvider(BaseProvider):
    channel = NotificationChannel.REALTIME

    def __init__(self, push_url: str, client: httpx.AsyncClient | None = None) -> None:
        self.push_url = push_url
        self._client = client or httpx.AsyncClient(timeout=10)

    def accepts(self, delivery: Delivery) -> bool:
        return bool(delivery.target)

    async def send(self, delivery: Delivery) -> None:
        body = {
            "target": delivery.target,
            "event": delivery.realtime_event,
            "payload": delivery.payload,
        }
        try:
            resp = await self._client.post(self.push_url, json=body)
        except httpx.HTTPError as exc:
            raise NotificationSendException(f"push to {delivery.target} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise NotificationSendException(
                f"push gateway answered {resp.status_code} for {delivery.target}"
            )

    async def aclose(self) -> None:
        await self._client.aclose()
