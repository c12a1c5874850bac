"""
Integration Test Fixtures

Builders for outbox rows and stores over the SQLite ``db`` fixture.
"""

import pytest

from reserve_delivery.core.outbox import (
    NOTIFICATION_TABLE,
    WEBHOOK_TABLE,
    NotificationOutboxEntry,
    OutboxStore,
    WebhookDelivery,
)

NOTIFICATION_PAYLOAD = {
    "reservationId": "res-1",
    "reservationCode": "ABC123",
    "reservationStatus": "confirmed",
    "guestName": "Ana",
    "venueName": "Tirana Grill",
    "slotLocalDate": "2026-03-01",
    "slotLocalTime": "19:30",
    "partySize": 4,
    "language": "en",
    "channel": "email",
    "event": "confirmed",
}


def make_notification(clock, channel="email", event="confirmed", **overrides) -> NotificationOutboxEntry:
    payload = dict(NOTIFICATION_PAYLOAD, channel=channel, event=event)
    payload.update(overrides.pop("payload_overrides", {}))
    fields = {
        "type": "reservation",
        "event": event,
        "channel": channel,
        "reservation_id": payload.get("reservationId"),
        "guest_contact": "anna@example.com" if channel == "email" else "+355691234567",
        "language": "en",
        "payload": payload,
        "scheduled_at": clock.now(),
    }
    fields.update(overrides)
    return NotificationOutboxEntry(**fields)


def make_delivery(clock, endpoint_id, event="reservation.created", **overrides) -> WebhookDelivery:
    fields = {
        "endpoint_id": endpoint_id,
        "reservation_id": "res-1",
        "event": event,
        "payload": {"reservation": {"id": "res-1", "status": "confirmed", "partySize": 4}},
        "scheduled_at": clock.now(),
    }
    fields.update(overrides)
    return WebhookDelivery(**fields)


@pytest.fixture
def notifications(db, clock):
    return OutboxStore(db, NOTIFICATION_TABLE, clock=clock, worker_id="worker-a")


@pytest.fixture
def deliveries(db, clock):
    return OutboxStore(db, WEBHOOK_TABLE, clock=clock, worker_id="worker-a")


@pytest.fixture
def new_notification(clock):
    """Factory for due notification rows."""
    def _build(**kwargs):
        return make_notification(clock, **kwargs)
    return _build


@pytest.fixture
def new_delivery(clock):
    """Factory for due webhook delivery rows."""
    def _build(endpoint_id, **kwargs):
        return make_delivery(clock, endpoint_id, **kwargs)
    return _build
