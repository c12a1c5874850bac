"""Webhook event names and the stored delivery payload."""

from typing import Any, Dict, Literal, get_args

from pydantic import BaseModel, ConfigDict

WebhookEvent = Literal[
    "reservation.created",
    "reservation.updated",
    "reservation.cancelled",
    "reservation.seated",
    "reservation.completed",
]

WEBHOOK_EVENTS = get_args(WebhookEvent)


class WebhookPayload(BaseModel):
    """
    Reservation snapshot sent as the envelope's ``data``.

    Only ``reservation`` is required; the snapshot is forwarded as stored.
    """

    model_config = ConfigDict(extra="allow")

    reservation: Dict[str, Any]
