"""
Admin API key authentication.

Operators send ``X-Admin-Key``. Without ADMIN_API_KEY configured the admin
surface is closed (503) rather than open.
"""

import hmac
from typing import Optional

from fastapi import Header, Request

from .exceptions import ServiceUnavailableError, UnauthorizedError


def require_admin_key(
    request: Request,
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
    x_operator_id: Optional[str] = Header(default=None, alias="X-Operator-Id"),
) -> str:
    """
    FastAPI dependency guarding operator endpoints.

    Returns the operator id used in audit logs.
    """
    expected = request.app.state.settings.admin_api_key
    if not expected:
        raise ServiceUnavailableError("Admin API is disabled (ADMIN_API_KEY is not set)")

    if not x_admin_key or not hmac.compare_digest(
        x_admin_key.encode("utf-8"), expected.encode("utf-8")
    ):
        raise UnauthorizedError("Invalid or missing X-Admin-Key")

    return x_operator_id or "admin"
