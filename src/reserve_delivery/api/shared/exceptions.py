"""
API Exception Classes

Raised from routers and dependencies; the registered error handler renders
them as ``{"error": {...}}`` with the status mapped from the error code.
"""

from typing import ClassVar, List, Optional

from .error_codes import ErrorCode, get_status_code
from .responses import ErrorDetail


class APIException(Exception):
    """Base exception for admin API errors."""

    default_code: ClassVar[ErrorCode] = ErrorCode.INTERNAL_ERROR
    default_message: ClassVar[str] = "An internal error occurred"

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        message: Optional[str] = None,
        details: Optional[List[ErrorDetail]] = None,
        trace_id: Optional[str] = None,
    ):
        self.code = code or self.default_code
        self.message = message or self.default_message
        self.details = details
        self.trace_id = trace_id
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return get_status_code(self.code)


class ValidationError(APIException):
    default_code = ErrorCode.VALIDATION_ERROR
    default_message = "Request validation failed"

    def __init__(self, message: str, details: Optional[List[ErrorDetail]] = None):
        super().__init__(message=message, details=details)


# Resource labels used by the admin router
_NOT_FOUND_CODES = {
    "Notification": ErrorCode.NOTIFICATION_NOT_FOUND,
    "Webhook delivery": ErrorCode.DELIVERY_NOT_FOUND,
    "Webhook endpoint": ErrorCode.ENDPOINT_NOT_FOUND,
}


class NotFoundError(APIException):
    """
    A notification, delivery or endpoint id that does not exist.

    The resource label picks the specific error code; unknown labels fall
    back to NOT_FOUND.
    """

    default_code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        self.resource = resource
        self.resource_id = resource_id
        label = f"{resource} '{resource_id}'" if resource_id else resource
        super().__init__(
            code=_NOT_FOUND_CODES.get(resource),
            message=f"{label} not found",
        )


class ConflictError(APIException):
    """Duplicate registration or a requeue of a record that is not FAILED."""

    default_code = ErrorCode.CONFLICT

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(code=code, message=message)


class UnauthorizedError(APIException):
    default_code = ErrorCode.UNAUTHORIZED
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message)


class ServiceUnavailableError(APIException):
    default_code = ErrorCode.SERVICE_UNAVAILABLE
    default_message = "Service unavailable"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message)
