"""
Outbox delivery error taxonomy.

The dispatcher turns each of these into a specific state transition:

- ConfigurationError: the cycle stops, rows stay untouched
- TransientDeliveryError: retried with backoff until max attempts
- PermanentPayloadError / UnknownChannelError: dead-lettered immediately
"""

from typing import Any, Dict, Optional


class DeliveryError(Exception):
    """Base class for delivery failures.

    ``extra`` carries column values to persist alongside the transition,
    e.g. the signature input of a failed webhook attempt.
    """

    retryable = True

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = dict(extra or {})


class ConfigurationError(DeliveryError):
    """A required secret or credential is missing."""

    retryable = False


class TransientDeliveryError(DeliveryError):
    """Network failure, non-2xx response or provider rejection."""


class PermanentPayloadError(DeliveryError):
    """The stored payload cannot be delivered as-is."""

    retryable = False


class UnknownChannelError(PermanentPayloadError):
    """The record names a channel no provider handles."""

    def __init__(self, channel: Any, extra: Optional[Dict[str, Any]] = None):
        super().__init__(f"Unsupported notification channel: {channel}", extra)
        self.channel = channel


class TemplateNotFoundError(PermanentPayloadError):
    """Neither the requested locale nor the default locale has the template."""


class RecordNotFoundError(LookupError):
    """No outbox record with the given id."""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"{table} record {record_id} not found")
        self.table = table
        self.record_id = record_id


class InvalidTransitionError(Exception):
    """A state change was requested from a status that does not allow it."""

    def __init__(self, record_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Cannot move record {record_id} from {current_status} to {target_status}"
        )
        self.record_id = record_id
        self.current_status = current_status
        self.target_status = target_status
