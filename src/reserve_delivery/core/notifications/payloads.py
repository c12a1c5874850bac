"""
Notification payload written by the booking platform.

Stored as camelCase JSON in ``notification_outbox.payload``.
"""

from typing import Any, Dict, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator

NotificationChannel = Literal["email", "sms"]
NotificationEvent = Literal["created", "confirmed", "modified", "cancelled", "reminder"]

NOTIFICATION_CHANNELS = get_args(NotificationChannel)
NOTIFICATION_EVENTS = get_args(NotificationEvent)


class NotificationPayload(BaseModel):
    """Reservation snapshot used to render one guest notification."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    reservation_id: str = Field(alias="reservationId", min_length=1)
    reservation_code: Optional[str] = Field(default=None, alias="reservationCode")
    reservation_status: Optional[str] = Field(default=None, alias="reservationStatus")
    guest_name: Optional[str] = Field(default=None, alias="guestName")
    venue_id: Optional[str] = Field(default=None, alias="venueId")
    venue_name: Optional[str] = Field(default=None, alias="venueName")
    slot_local_date: Optional[str] = Field(default=None, alias="slotLocalDate")
    slot_local_time: Optional[str] = Field(default=None, alias="slotLocalTime")
    slot_start_utc: Optional[str] = Field(default=None, alias="slotStartUtc")
    party_size: Optional[int] = Field(default=None, alias="partySize")
    language: Optional[str] = None
    channel: str
    event: NotificationEvent
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value: Any) -> Any:
        return {} if value is None else value
