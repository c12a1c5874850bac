"""
Outbox Models

Work items persisted by producers and mutated by the dispatcher.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class OutboxStatus(str, Enum):
    """Status of an outbox record. SUCCESS and FAILED are terminal."""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class OutboxRecord(BaseModel):
    """Generic outbox row shared by both workers."""

    id: str = Field(default_factory=_new_id)
    event: str
    channel: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = Field(default=0, ge=0)
    last_error: Optional[str] = None

    scheduled_at: datetime = Field(default_factory=_utcnow)
    claimed_by: Optional[str] = None
    claimed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("payload", mode="before")
    @classmethod
    def _decode_payload(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"claimed_by", "claimed_at"})


class NotificationOutboxEntry(OutboxRecord):
    """Guest email/SMS notification."""

    type: str = ""
    reservation_id: Optional[str] = None
    # Ciphertext when contact_key_version is set, plaintext otherwise.
    guest_contact: Optional[str] = None
    contact_key_version: Optional[int] = None
    language: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.pop("guest_contact", None)
        return data


class WebhookDelivery(OutboxRecord):
    """Signed HTTP callback to a registered endpoint."""

    channel: str = "http"
    endpoint_id: Optional[str] = None
    reservation_id: Optional[str] = None
    signature_input: Optional[str] = None
    delivered_at: Optional[datetime] = None


class WebhookEndpoint(BaseModel):
    """An integrator-registered callback URL."""

    id: str = Field(default_factory=_new_id)
    url: str
    description: Optional[str] = None
    is_active: bool = True
    secret: Optional[str] = None
    events: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("events", mode="before")
    @classmethod
    def _decode_events(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value

    def subscribes_to(self, event: str) -> bool:
        """An empty subscription list means every event."""
        return not self.events or event in self.events

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"secret"})


@dataclass(frozen=True)
class ClaimFilter:
    """Restricts which PENDING rows a cycle may claim."""
    channels: Optional[Tuple[str, ...]] = None
    exclude_channels: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OutboxTable:
    """Describes how one outbox table maps onto a record model."""
    name: str
    record_type: Type[OutboxRecord]
    columns: Tuple[str, ...]
    # Columns a transition may set besides the state machine columns.
    extra_columns: Tuple[str, ...] = ()
    # Columns nulled by an administrative requeue.
    requeue_resets: Tuple[str, ...] = ()
    search_columns: Tuple[str, ...] = ("event",)
    filter_columns: Tuple[str, ...] = ()
    json_columns: Tuple[str, ...] = field(default=("payload",))


_STATE_COLUMNS = (
    "status", "attempts", "last_error", "scheduled_at",
    "claimed_by", "claimed_at", "failed_at", "created_at", "updated_at",
)

NOTIFICATION_TABLE = OutboxTable(
    name="notification_outbox",
    record_type=NotificationOutboxEntry,
    columns=(
        "id", "type", "event", "channel", "reservation_id", "guest_contact",
        "contact_key_version", "language", "payload",
    ) + _STATE_COLUMNS,
    search_columns=("type", "event", "guest_contact", "reservation_id"),
    filter_columns=("channel", "reservation_id"),
)

WEBHOOK_TABLE = OutboxTable(
    name="webhook_deliveries",
    record_type=WebhookDelivery,
    columns=(
        "id", "endpoint_id", "reservation_id", "event", "channel", "payload",
        "signature_input", "delivered_at",
    ) + _STATE_COLUMNS,
    extra_columns=("signature_input", "delivered_at"),
    requeue_resets=("delivered_at",),
    search_columns=("event", "reservation_id"),
    filter_columns=("endpoint_id", "reservation_id"),
)
