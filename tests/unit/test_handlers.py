"""
Tests for payload parsing and envelope construction in the delivery handlers.
"""

import json
from datetime import datetime, timezone

import pytest

from reserve_delivery.core.notifications import (
    NotificationDeliveryHandler,
    NotificationPayload,
    TemplateRenderer,
    build_template_variables,
    resolve_subject,
)
from reserve_delivery.core.notifications.providers import (
    EmailNotificationProvider,
    PreviewEmailTransport,
    SmsNotificationProvider,
)
from reserve_delivery.core.outbox import (
    ConfigurationError,
    NotificationOutboxEntry,
    PermanentPayloadError,
    WebhookDelivery,
)
from reserve_delivery.core.webhooks import (
    WebhookDeliveryHandler,
    WebhookHttpProvider,
    build_envelope,
    build_headers,
)

PAYLOAD = {
    "reservationId": "res-1",
    "reservationCode": "ABC123",
    "guestName": "Ana",
    "venueName": "Tirana Grill",
    "slotLocalDate": "2026-03-01",
    "slotLocalTime": "19:30",
    "partySize": 4,
    "channel": "email",
    "event": "confirmed",
}


def notification_handler(sms=None) -> NotificationDeliveryHandler:
    return NotificationDeliveryHandler(
        renderer=TemplateRenderer(),
        email=EmailNotificationProvider(PreviewEmailTransport(), "reservations@example.test"),
        sms=sms or SmsNotificationProvider(),
    )


def entry(**overrides) -> NotificationOutboxEntry:
    fields = {
        "type": "reservation",
        "event": "confirmed",
        "channel": "email",
        "guest_contact": "anna@example.com",
        "payload": dict(PAYLOAD),
    }
    fields.update(overrides)
    return NotificationOutboxEntry(**fields)


class TestNotificationPayload:

    def test_camel_case_aliases(self):
        payload = NotificationPayload.model_validate(PAYLOAD)
        assert payload.reservation_id == "res-1"
        assert payload.party_size == 4
        assert payload.metadata == {}

    def test_null_metadata_becomes_empty(self):
        payload = NotificationPayload.model_validate({**PAYLOAD, "metadata": None})
        assert payload.metadata == {}

    def test_subject_and_variables(self):
        payload = NotificationPayload.model_validate(PAYLOAD)

        assert resolve_subject(payload) == "Tirana Grill: reservation confirmed (ABC123)"
        variables = build_template_variables(payload)
        assert variables["guestName"] == "Ana"
        assert variables["time"] == "19:30"


class TestNotificationHandlerParse:
    """Rows that can never be delivered fail permanently."""

    def test_valid_row(self):
        payload = notification_handler().parse(entry())
        assert payload.event == "confirmed"

    def test_stored_json_string_payload(self):
        record = entry(payload=json.dumps(PAYLOAD))
        assert notification_handler().parse(record).reservation_code == "ABC123"

    def test_empty_payload(self):
        with pytest.raises(PermanentPayloadError, match="Missing notification payload"):
            notification_handler().parse(entry(payload={}))

    def test_missing_reservation_id(self):
        bad = {k: v for k, v in PAYLOAD.items() if k != "reservationId"}
        with pytest.raises(PermanentPayloadError, match="reservationId"):
            notification_handler().parse(entry(payload=bad))

    def test_unknown_event(self):
        with pytest.raises(PermanentPayloadError):
            notification_handler().parse(entry(payload={**PAYLOAD, "event": "paid"}))

    def test_payload_channel_must_match_row(self):
        record = entry(payload={**PAYLOAD, "channel": "sms"})
        with pytest.raises(PermanentPayloadError, match="does not match row channel"):
            notification_handler().parse(record)

    def test_missing_contact(self):
        with pytest.raises(PermanentPayloadError, match="Guest contact"):
            notification_handler().parse(entry(guest_contact=None))

    def test_describe_masks_contact(self):
        handler = notification_handler()
        assert handler.describe(entry()) == "confirmed/email to a***@example.com"
        assert "<encrypted>" in handler.describe(entry(contact_key_version=2))

    def test_preflight_excludes_sms_when_unconfigured(self):
        claim_filter = notification_handler().preflight()
        assert claim_filter.exclude_channels == ("sms",)


class TestWebhookEnvelope:
    """Test the signed body and headers."""

    def delivery(self) -> WebhookDelivery:
        return WebhookDelivery(
            id="d-1",
            endpoint_id="ep-1",
            event="reservation.created",
            payload={"reservation": {"id": "res-1", "status": "pending"}},
        )

    def test_envelope_key_order(self):
        created_at = datetime(2026, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
        envelope = build_envelope(self.delivery(), 2, created_at)

        assert list(envelope) == ["id", "event", "attempt", "createdAt", "data"]
        assert envelope["attempt"] == 2
        assert envelope["createdAt"] == "2026-03-01T12:00:00.123Z"
        assert envelope["data"] == {"reservation": {"id": "res-1", "status": "pending"}}

    def test_headers(self):
        headers = build_headers(self.delivery(), "1772366400", "abc", "ReservePlatformWebhook/1.0")

        assert headers == {
            "Content-Type": "application/json",
            "User-Agent": "ReservePlatformWebhook/1.0",
            "X-Reserve-Event": "reservation.created",
            "X-Reserve-Delivery": "d-1",
            "X-Reserve-Timestamp": "1772366400",
            "X-Reserve-Signature": "t=1772366400,v1=abc",
        }

    @pytest.mark.parametrize("secret", [None, "", "   "])
    def test_preflight_requires_secret(self, secret):
        handler = WebhookDeliveryHandler(endpoints=None, http=WebhookHttpProvider(), secret=secret)
        with pytest.raises(ConfigurationError):
            handler.preflight()

    def test_parse_rejects_unknown_event(self):
        handler = WebhookDeliveryHandler(endpoints=None, http=WebhookHttpProvider(), secret="s")
        record = self.delivery().model_copy(update={"event": "reservation.paid"})
        with pytest.raises(PermanentPayloadError, match="Unknown webhook event"):
            handler.parse(record)

    def test_parse_requires_reservation_snapshot(self):
        handler = WebhookDeliveryHandler(endpoints=None, http=WebhookHttpProvider(), secret="s")
        record = self.delivery().model_copy(update={"payload": {"other": 1}})
        with pytest.raises(PermanentPayloadError):
            handler.parse(record)
