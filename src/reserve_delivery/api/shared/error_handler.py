"""
Global Error Handlers

Every failure leaves the admin API as ``{"error": ErrorBody}``. The trace id
in the body is the active OpenTelemetry trace when there is one.
"""

import logging
from typing import List, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ...core.observability import get_trace_id
from .error_codes import ErrorCode
from .exceptions import APIException
from .responses import ErrorBody, ErrorDetail

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    details: Optional[List[ErrorDetail]] = None,
    trace_id: Optional[str] = None,
) -> JSONResponse:
    body = ErrorBody(
        code=code.value,
        message=message,
        details=details,
        trace_id=trace_id or get_trace_id() or str(uuid4()),
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": body.model_dump(mode="json")},
    )


def _validation_details(exc: RequestValidationError) -> List[ErrorDetail]:
    # ("query", "status") -> "query.status"
    return [
        ErrorDetail(
            field=".".join(str(part) for part in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]


async def handle_api_exception(request: Request, exc: APIException) -> JSONResponse:
    logger.warning(
        f"{request.method} {request.url.path} -> {exc.code.value}: {exc.message}",
        extra={"error_code": exc.code.value, "path": request.url.path},
    )
    return error_response(exc.status_code, exc.code, exc.message, exc.details, exc.trace_id)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = _validation_details(exc)
    logger.warning(
        f"{request.method} {request.url.path} rejected: "
        + "; ".join(f"{d.field} {d.message}" for d in details),
        extra={"error_code": ErrorCode.VALIDATION_ERROR.value, "path": request.url.path},
    )
    return error_response(400, ErrorCode.VALIDATION_ERROR, "Request validation failed", details)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    # Internal details stay in the log
    logger.exception(
        f"{request.method} {request.url.path} failed with {type(exc).__name__}",
        extra={"path": request.url.path},
    )
    return error_response(500, ErrorCode.INTERNAL_ERROR, "An internal error occurred")


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(APIException, handle_api_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
