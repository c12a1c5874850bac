"""
Shared API components: error codes, exceptions, error handlers and auth.
"""

from .auth import require_admin_key
from .error_codes import ErrorCode, get_status_code
from .error_handler import register_error_handlers
from .exceptions import (
    APIException,
    ConflictError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from .responses import ErrorBody, ErrorDetail

__all__ = [
    "require_admin_key",
    "ErrorCode",
    "get_status_code",
    "register_error_handlers",
    "APIException",
    "ConflictError",
    "NotFoundError",
    "ServiceUnavailableError",
    "UnauthorizedError",
    "ValidationError",
    "ErrorBody",
    "ErrorDetail",
]
