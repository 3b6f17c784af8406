"""Email provider implementation."""

from __future__ import annotations

import contextlib
import logging
from email.message import EmailMessage

import aiosmtplib

from app.modules.casemanager.domain import Delivery
from app.modules.casemanager.provider.base import BaseProvider
from app.modules.casemanager.util import NotificationChannel
from app.modules.casemanager.util.exceptions import NotificationSendException
from app.settings import Settings

log = logging.getLogger(__name__)


class EmailProvider(BaseProvider):
    channel = NotificationChannel.EMAIL

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def accepts(self, delivery: Delivery) -> bool:
        return bool(self.settings.email_enabled and delivery.email)

    async def send(self, delivery: Delivery) -> None:
        settings = self.settings
        if not settings.smtp_host or not settings.smtp_port:
            raise NotificationSendException("SMTP host/port not configured.")
        sender = settings.smtp_sender or settings.smtp_username
        if not sender:
            raise NotificationSendException("SMTP sender not configured.")

        email = EmailMessage()
        email["Subject"] = delivery.subject
        email["From"] = sender
        email["To"] = delivery.email
        email.set_content(delivery.message)

        use_tls = settings.smtp_port == 465
        smtp = aiosmtplib.SMTP(
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            use_tls=use_tls,
            start_tls=settings.smtp_starttls and not use_tls,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
        )

        try:
            await smtp.connect()
            await smtp.send_message(email)
        except aiosmtplib.SMTPException as exc:
            raise NotificationSendException(f"SMTP delivery to {delivery.email} failed: {exc}") from exc
        except OSError as exc:
            raise NotificationSendException(f"SMTP connection failed: {exc}") from exc
        finally:
            with contextlib.suppress(Exception):
                await smtp.quit()
        log.debug("Email '%s' sent to %s", delivery.subject, delivery.email)
