"""
Outbox Delivery Engine

Durable work items, atomic claiming, retry with backoff and dead-lettering,
shared by the notification and webhook workers.

Usage:
    from reserve_delivery.core.outbox import OutboxStore, OutboxDispatcher, NOTIFICATION_TABLE

    store = OutboxStore(db, NOTIFICATION_TABLE)
    dispatcher = OutboxDispatcher(store, handler, DispatcherSettings(name="notifications"))
    await dispatcher.run(stop_event)
"""

from .backoff import BackoffPolicy, backoff_minutes, DEFAULT_CAP_MINUTES
from .clock import Clock, SystemClock
from .dispatcher import (
    CycleResult,
    DeliveryHandler,
    DeliveryOutcome,
    DeliveryResult,
    DispatcherSettings,
    OutboxDispatcher,
)
from .dlq import DeadLetterAction, DeadLetterManager
from .errors import (
    ConfigurationError,
    DeliveryError,
    InvalidTransitionError,
    PermanentPayloadError,
    RecordNotFoundError,
    TemplateNotFoundError,
    TransientDeliveryError,
    UnknownChannelError,
)
from .models import (
    NOTIFICATION_TABLE,
    WEBHOOK_TABLE,
    ClaimFilter,
    NotificationOutboxEntry,
    OutboxRecord,
    OutboxStatus,
    OutboxTable,
    WebhookDelivery,
    WebhookEndpoint,
)
from .store import OutboxStore, default_worker_id

__all__ = [
    "BackoffPolicy",
    "backoff_minutes",
    "DEFAULT_CAP_MINUTES",
    "Clock",
    "SystemClock",
    "CycleResult",
    "DeliveryHandler",
    "DeliveryOutcome",
    "DeliveryResult",
    "DispatcherSettings",
    "OutboxDispatcher",
    "DeadLetterAction",
    "DeadLetterManager",
    "ConfigurationError",
    "DeliveryError",
    "InvalidTransitionError",
    "PermanentPayloadError",
    "RecordNotFoundError",
    "TemplateNotFoundError",
    "TransientDeliveryError",
    "UnknownChannelError",
    "NOTIFICATION_TABLE",
    "WEBHOOK_TABLE",
    "ClaimFilter",
    "NotificationOutboxEntry",
    "OutboxRecord",
    "OutboxStatus",
    "OutboxTable",
    "WebhookDelivery",
    "WebhookEndpoint",
    "OutboxStore",
    "default_worker_id",
]
