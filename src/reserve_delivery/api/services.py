"""Stores and managers the admin API works with, built once per app."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..core.database.adapter import DatabaseAdapter
from ..core.outbox.clock import Clock, SystemClock
from ..core.outbox.dlq import DeadLetterManager
from ..core.outbox.models import NOTIFICATION_TABLE, WEBHOOK_TABLE
from ..core.outbox.store import OutboxStore
from ..core.webhooks.endpoints import WebhookEndpointStore


@dataclass
class AdminServices:
    db: DatabaseAdapter
    notifications: OutboxStore
    deliveries: OutboxStore
    endpoints: WebhookEndpointStore
    dead_letters: DeadLetterManager

    @classmethod
    def build(cls, db: DatabaseAdapter, clock: Optional[Clock] = None) -> "AdminServices":
        clock = clock or SystemClock()
        notifications = OutboxStore(db, NOTIFICATION_TABLE, clock=clock, worker_id="admin-api")
        deliveries = OutboxStore(db, WEBHOOK_TABLE, clock=clock, worker_id="admin-api")
        return cls(
            db=db,
            notifications=notifications,
            deliveries=deliveries,
            endpoints=WebhookEndpointStore(db, clock=clock),
            dead_letters=DeadLetterManager({
                NOTIFICATION_TABLE.name: notifications,
                WEBHOOK_TABLE.name: deliveries,
            }),
        )


def get_services(request: Request) -> AdminServices:
    return request.app.state.services
