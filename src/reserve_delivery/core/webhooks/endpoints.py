"""
Webhook Endpoints

Registry of integrator callback URLs and the fan-out that enqueues one
delivery per subscribed endpoint.
"""

import json
import logging
import secrets
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

import asyncpg

from ..database.adapter import DatabaseAdapter, affected_rows
from ..outbox.clock import Clock, SystemClock
from ..outbox.errors import RecordNotFoundError
from ..outbox.models import WEBHOOK_TABLE, WebhookDelivery, WebhookEndpoint
from ..outbox.store import OutboxStore
from .payloads import WEBHOOK_EVENTS

logger = logging.getLogger(__name__)


class DuplicateEndpointError(ValueError):
    """An endpoint with this URL is already registered."""

    def __init__(self, url: str):
        super().__init__(f"Webhook endpoint already registered for {url}")
        self.url = url


def generate_secret() -> str:
    return secrets.token_hex(32)


def _validate_events(events: Optional[Iterable[str]]) -> List[str]:
    unique = list(dict.fromkeys(events or []))
    unknown = [e for e in unique if e not in WEBHOOK_EVENTS]
    if unknown:
        raise ValueError(f"Unknown webhook event(s): {', '.join(unknown)}")
    return unique


class WebhookEndpointStore:
    """CRUD for webhook_endpoints."""

    def __init__(self, db: DatabaseAdapter, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()

    async def create(
        self,
        url: str,
        description: Optional[str] = None,
        events: Optional[Iterable[str]] = None,
        secret: Optional[str] = None,
        is_active: bool = True,
    ) -> WebhookEndpoint:
        """
        Register a new endpoint.

        Raises:
            DuplicateEndpointError: the URL is already registered
            ValueError: an event name is not a known webhook event
        """
        now = self.clock.now()
        endpoint = WebhookEndpoint(
            url=url,
            description=description,
            events=_validate_events(events),
            secret=secret,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )

        existing = await self.db.fetchval(
            "SELECT id FROM webhook_endpoints WHERE url = $1", url
        )
        if existing:
            raise DuplicateEndpointError(url)

        try:
            await self.db.execute(
                """
                INSERT INTO webhook_endpoints
                    (id, url, description, is_active, secret, events, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                """,
                endpoint.id, endpoint.url, endpoint.description, endpoint.is_active,
                endpoint.secret, json.dumps(endpoint.events), now, now
            )
        except (asyncpg.UniqueViolationError, sqlite3.IntegrityError) as e:
            raise DuplicateEndpointError(url) from e

        logger.info(f"Registered webhook endpoint {endpoint.id} -> {endpoint.url}")
        return endpoint

    async def get(self, endpoint_id: str) -> Optional[WebhookEndpoint]:
        row = await self.db.fetchrow(
            "SELECT * FROM webhook_endpoints WHERE id = $1", endpoint_id
        )
        return WebhookEndpoint.model_validate(row) if row else None

    async def list(self, active_only: bool = False) -> List[WebhookEndpoint]:
        if active_only:
            rows = await self.db.fetch(
                "SELECT * FROM webhook_endpoints WHERE is_active = $1 ORDER BY created_at ASC",
                True
            )
        else:
            rows = await self.db.fetch(
                "SELECT * FROM webhook_endpoints ORDER BY created_at ASC"
            )
        return [WebhookEndpoint.model_validate(row) for row in rows]

    async def set_active(self, endpoint_id: str, is_active: bool) -> WebhookEndpoint:
        status = await self.db.execute(
            "UPDATE webhook_endpoints SET is_active = $1, updated_at = $2 WHERE id = $3",
            is_active, self.clock.now(), endpoint_id
        )
        if affected_rows(status) == 0:
            raise RecordNotFoundError("webhook_endpoints", endpoint_id)
        logger.info(f"Webhook endpoint {endpoint_id} {'activated' if is_active else 'deactivated'}")
        return await self.get(endpoint_id)

    async def rotate_secret(self, endpoint_id: str) -> str:
        """Give the endpoint its own signing secret and return it once."""
        secret = generate_secret()
        status = await self.db.execute(
            "UPDATE webhook_endpoints SET secret = $1, updated_at = $2 WHERE id = $3",
            secret, self.clock.now(), endpoint_id
        )
        if affected_rows(status) == 0:
            raise RecordNotFoundError("webhook_endpoints", endpoint_id)
        logger.info(f"Rotated signing secret for webhook endpoint {endpoint_id}")
        return secret


class WebhookPublisher:
    """
    Producer-side fan-out: one PENDING delivery per active endpoint
    subscribed to each event.

    Usage:
        publisher = WebhookPublisher(endpoints, deliveries)
        await publisher.enqueue_reservation_events(snapshot, ["reservation.created"])
    """

    def __init__(self, endpoints: WebhookEndpointStore, deliveries: OutboxStore):
        if deliveries.table is not WEBHOOK_TABLE:
            raise ValueError("WebhookPublisher needs the webhook_deliveries store")
        self.endpoints = endpoints
        self.deliveries = deliveries

    async def enqueue_reservation_events(
        self,
        reservation: Dict[str, Any],
        events: Iterable[str],
    ) -> List[WebhookDelivery]:
        unique_events = _validate_events(events)
        if not unique_events:
            return []

        endpoints = await self.endpoints.list(active_only=True)
        if not endpoints:
            return []

        created = []
        for event in unique_events:
            for endpoint in endpoints:
                if not endpoint.subscribes_to(event):
                    continue
                delivery = await self.deliveries.enqueue(WebhookDelivery(
                    endpoint_id=endpoint.id,
                    reservation_id=reservation.get("id"),
                    event=event,
                    payload={"reservation": reservation},
                    scheduled_at=self.deliveries.clock.now(),
                ))
                created.append(delivery)

        if created:
            logger.info(
                f"Enqueued {len(created)} webhook delivery(ies) for reservation "
                f"{reservation.get('id')} ({', '.join(unique_events)})"
            )
        return created
