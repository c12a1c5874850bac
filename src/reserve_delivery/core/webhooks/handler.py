"""
Webhook Delivery Handler

Builds the signed envelope for a webhook_deliveries row and posts it to
the registered endpoint.

Envelope (serialized compactly, in this key order):
    {"id", "event", "attempt", "createdAt", "data"}

The exact signed string is stored on the row as ``signature_input`` for
every attempt, including failed and timed-out ones.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..outbox.clock import Clock, SystemClock
from ..outbox.dispatcher import DeliveryHandler, DeliveryResult
from ..outbox.errors import ConfigurationError, PermanentPayloadError
from ..outbox.models import WebhookDelivery, WebhookEndpoint
from .endpoints import WebhookEndpointStore
from .http import WebhookHttpProvider
from .payloads import WEBHOOK_EVENTS, WebhookPayload
from .signing import compute_signature, serialize_body, signature_header, signature_input

logger = logging.getLogger(__name__)


def _iso_millis(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_envelope(
    record: WebhookDelivery, attempt: int, created_at: datetime
) -> Dict[str, Any]:
    return {
        "id": record.id,
        "event": record.event,
        "attempt": attempt,
        "createdAt": _iso_millis(created_at),
        "data": record.payload,
    }


def build_headers(
    record: WebhookDelivery, timestamp: str, signature: str, user_agent: str
) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "User-Agent": user_agent,
        "X-Reserve-Event": record.event,
        "X-Reserve-Delivery": record.id,
        "X-Reserve-Timestamp": timestamp,
        "X-Reserve-Signature": signature_header(timestamp, signature),
    }


class WebhookDeliveryHandler(DeliveryHandler[WebhookDelivery, WebhookPayload]):
    """Signed HTTP delivery to integrator endpoints."""

    name = "webhooks"

    def __init__(
        self,
        endpoints: WebhookEndpointStore,
        http: WebhookHttpProvider,
        secret: Optional[str],
        clock: Optional[Clock] = None,
    ):
        self.endpoints = endpoints
        self.http = http
        self.secret = secret.strip() if secret and secret.strip() else None
        self.clock = clock or SystemClock()

    def preflight(self):
        if not self.secret:
            raise ConfigurationError(
                "WEBHOOK_SECRET is not configured; skipping webhook delivery cycle"
            )
        return None

    def parse(self, record: WebhookDelivery) -> WebhookPayload:
        if record.event not in WEBHOOK_EVENTS:
            raise PermanentPayloadError(f"Unknown webhook event: {record.event}")
        try:
            return WebhookPayload.model_validate(record.payload)
        except ValidationError as e:
            raise PermanentPayloadError(f"Webhook {record.id} has invalid payload") from e

    def describe(self, record: WebhookDelivery) -> str:
        return f"{record.event} to endpoint {record.endpoint_id}"

    async def _endpoint(self, record: WebhookDelivery) -> WebhookEndpoint:
        endpoint = None
        if record.endpoint_id:
            endpoint = await self.endpoints.get(record.endpoint_id)
        if endpoint is None:
            raise PermanentPayloadError("Missing endpoint")
        if not endpoint.is_active:
            raise PermanentPayloadError(f"Endpoint {endpoint.id} is inactive")
        return endpoint

    async def deliver(
        self,
        record: WebhookDelivery,
        payload: WebhookPayload,
        attempt: int,
        audit: Dict[str, Any],
    ) -> DeliveryResult:
        endpoint = await self._endpoint(record)
        secret = endpoint.secret or self.secret
        if not secret:
            raise ConfigurationError("No signing secret available for webhook delivery")

        now = self.clock.now()
        timestamp = str(int(now.timestamp()))
        body = serialize_body(build_envelope(record, attempt, now))
        audit["signature_input"] = signature_input(timestamp, body)
        headers = build_headers(
            record, timestamp, compute_signature(secret, timestamp, body), self.http.user_agent
        )

        await self.http.post(endpoint.url, body, headers)

        logger.debug(f"Webhook {record.id} accepted by {endpoint.url}")
        return DeliveryResult(extra={"delivered_at": now})
