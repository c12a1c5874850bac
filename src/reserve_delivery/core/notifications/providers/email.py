"""
Email Notification Provider

Builds the MIME message and hands it to a transport.

Transports:
- SmtpEmailTransport: smtplib in a worker thread, optional STARTTLS/login
- PreviewEmailTransport: logs the rendered message, for development
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Protocol

from ...outbox.errors import TransientDeliveryError
from ...privacy import mask_contact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailPayload:
    to: str
    subject: str
    text: str


class EmailTransport(Protocol):
    async def send_message(self, message: EmailMessage) -> str:
        """Send and return the message id."""
        ...


class SmtpEmailTransport:
    """SMTP submission with smtplib, run off the event loop."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        starttls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.starttls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send_message(self, message: EmailMessage) -> str:
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise TransientDeliveryError(f"SMTP delivery failed: {e}") from e
        return message["Message-ID"]


class PreviewEmailTransport:
    """Renders the message and logs it instead of sending."""

    async def send_message(self, message: EmailMessage) -> str:
        logger.debug(f"Email preview:\n{message.as_string()}")
        return message["Message-ID"]


class EmailNotificationProvider:
    """Sends guest notification emails from a fixed sender identity."""

    def __init__(self, transport: EmailTransport, from_address: str):
        self.transport = transport
        self.from_address = from_address

    def build_message(self, payload: EmailPayload) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = payload.to
        message["Subject"] = payload.subject
        message["Message-ID"] = make_msgid(domain=self.from_address.rpartition("@")[2] or None)
        message.set_content(payload.text)
        return message

    async def send(self, payload: EmailPayload) -> str:
        message = self.build_message(payload)
        message_id = await self.transport.send_message(message)
        logger.info(
            f"Email notification sent to {mask_contact(payload.to)} (messageId={message_id})"
        )
        return message_id
