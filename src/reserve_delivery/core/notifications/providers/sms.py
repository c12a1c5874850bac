"""
SMS Notification Provider

Sends guest text messages through the Twilio Messages REST API.

A provider without a transport is unconfigured: sending raises
ConfigurationError instead of pretending the message went out.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from ...outbox.errors import ConfigurationError, TransientDeliveryError
from ...privacy import mask_contact

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com"


@dataclass(frozen=True)
class SmsPayload:
    to: str
    text: str


class SmsTransport(Protocol):
    async def send_sms(self, to: str, text: str) -> str:
        """Send and return the provider message id."""
        ...


class TwilioSmsTransport:
    """Twilio Messages API over httpx."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = TWILIO_API_BASE,
        timeout: float = 10.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"

    async def _post(self, client: httpx.AsyncClient, to: str, text: str) -> httpx.Response:
        return await client.post(
            self.messages_url,
            data={"To": to, "From": self.from_number, "Body": text},
            auth=(self.account_sid, self.auth_token),
        )

    async def send_sms(self, to: str, text: str) -> str:
        try:
            if self._client is not None:
                response = await self._post(self._client, to, text)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, to, text)
        except httpx.HTTPError as e:
            raise TransientDeliveryError(f"Twilio request failed: {e}") from e

        if not response.is_success:
            raise TransientDeliveryError(
                f"Twilio responded with {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json().get("sid") or "unknown"
        except ValueError:
            return "unknown"


class SmsNotificationProvider:
    """Sends guest notification SMS."""

    def __init__(self, transport: Optional[SmsTransport] = None):
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return self.transport is not None

    def ensure_configured(self):
        if self.transport is None:
            raise ConfigurationError(
                "SMS transport is not configured "
                "(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER are required)"
            )

    async def send(self, payload: SmsPayload) -> str:
        self.ensure_configured()
        message_id = await self.transport.send_sms(payload.to, payload.text)
        logger.info(
            f"SMS notification sent to {mask_contact(payload.to)} (sid={message_id})"
        )
        return message_id
