"""
API Response Models

The error body every admin endpoint returns on failure:

    {"error": {"code": "NOTIFICATION_NOT_FOUND", "message": "...",
               "details": null, "trace_id": "...", "timestamp": "..."}}
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """One rejected request field."""

    field: Optional[str] = None
    message: str
    code: Optional[str] = None


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[List[ErrorDetail]] = None
    trace_id: str = Field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
