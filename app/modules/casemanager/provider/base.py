"""Transport base class."""

from __future__ import annotations

import logging

from app.modules.casemanager.domain import Delivery
from app.modules.casemanager.util import NotificationChannel

log = logging.getLogger(__name__)


class BaseProvider:
    """A best-effort transport. ``send`` raises NotificationSendException on failure."""

    channel: NotificationChannel

    def accepts(self, delivery: Delivery) -> bool:
        return True

    async def send(self, delivery: Delivery) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
