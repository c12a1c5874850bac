"""
Notification Delivery Handler

Turns a notification_outbox row into a rendered email or SMS.

The guest contact is decrypted here, right before it is handed to the
provider, and never written back to the row.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..outbox.dispatcher import DeliveryHandler, DeliveryResult
from ..outbox.errors import PermanentPayloadError, UnknownChannelError
from ..outbox.models import ClaimFilter, NotificationOutboxEntry
from ..privacy import PassthroughPiiCipher, PiiCipher, mask_contact
from .payloads import NotificationPayload
from .providers.email import EmailNotificationProvider, EmailPayload
from .providers.sms import SmsNotificationProvider, SmsPayload
from .renderer import TemplateRenderer

logger = logging.getLogger(__name__)

_SUBJECTS = {
    "created": "{venue}: reservation received",
    "confirmed": "{venue}: reservation confirmed ({code})",
    "modified": "{venue}: reservation updated",
    "cancelled": "{venue}: reservation cancelled",
    "reminder": "{venue}: upcoming reservation reminder",
}


def resolve_subject(payload: NotificationPayload) -> str:
    venue = payload.venue_name or "Your reservation"
    template = _SUBJECTS.get(payload.event, "{venue}: reservation update")
    return template.format(venue=venue, code=payload.reservation_code or "")


def build_template_variables(payload: NotificationPayload) -> Dict[str, Any]:
    return {
        "guestName": payload.guest_name or "guest",
        "venueName": payload.venue_name or "our venue",
        "date": payload.slot_local_date,
        "time": payload.slot_local_time,
        "reservationCode": payload.reservation_code,
        "partySize": payload.party_size,
        "status": payload.reservation_status,
    }


def _validation_summary(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "payload"
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


class NotificationDeliveryHandler(DeliveryHandler[NotificationOutboxEntry, NotificationPayload]):
    """Email and SMS delivery for guest reservation notifications."""

    name = "notifications"

    def __init__(
        self,
        renderer: TemplateRenderer,
        email: EmailNotificationProvider,
        sms: SmsNotificationProvider,
        cipher: Optional[PiiCipher] = None,
    ):
        self.renderer = renderer
        self.email = email
        self.sms = sms
        self.cipher = cipher or PassthroughPiiCipher()

    def preflight(self) -> Optional[ClaimFilter]:
        if self.sms.is_configured:
            return None
        # SMS rows stay PENDING until credentials are provided.
        logger.error(
            "SMS transport is not configured; SMS notifications are left pending "
            "(set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER)"
        )
        return ClaimFilter(exclude_channels=("sms",))

    def parse(self, record: NotificationOutboxEntry) -> NotificationPayload:
        if not record.payload:
            raise PermanentPayloadError("Missing notification payload")
        try:
            payload = NotificationPayload.model_validate(record.payload)
        except ValidationError as e:
            raise PermanentPayloadError(
                f"Invalid notification payload: {_validation_summary(e)}"
            ) from e
        if payload.channel != record.channel:
            # The claim filter only sees the column, so the two must agree.
            raise PermanentPayloadError(
                f"Payload channel {payload.channel!r} does not match row channel {record.channel!r}"
            )
        if not record.guest_contact:
            raise PermanentPayloadError("Guest contact is missing")
        return payload

    def describe(self, record: NotificationOutboxEntry) -> str:
        return f"{record.event}/{record.channel} to {self._masked_contact(record)}"

    def _masked_contact(self, record: NotificationOutboxEntry) -> str:
        if record.contact_key_version is not None:
            return "<encrypted>"
        return mask_contact(record.guest_contact)

    def _contact(self, record: NotificationOutboxEntry) -> str:
        if record.contact_key_version is None:
            return record.guest_contact
        return self.cipher.decrypt(record.guest_contact, record.contact_key_version)

    async def deliver(
        self,
        record: NotificationOutboxEntry,
        payload: NotificationPayload,
        attempt: int,
        audit: Dict[str, Any],
    ) -> DeliveryResult:
        if record.channel not in ("email", "sms"):
            raise UnknownChannelError(record.channel)

        language = payload.language or record.language
        body = self.renderer.render(language, payload.event, build_template_variables(payload))
        contact = self._contact(record)

        if record.channel == "email":
            await self.email.send(EmailPayload(
                to=contact,
                subject=resolve_subject(payload),
                text=body,
            ))
        else:
            await self.sms.send(SmsPayload(to=contact, text=body))

        return DeliveryResult()
