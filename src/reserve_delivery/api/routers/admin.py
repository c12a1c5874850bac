"""
Admin/Operator API

Endpoints for inspecting and recovering outbox deliveries and for
registering integrator webhook endpoints.
"""

import logging
from typing import List, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, field_validator

from ...core.outbox.errors import InvalidTransitionError, RecordNotFoundError
from ...core.outbox.models import NOTIFICATION_TABLE, WEBHOOK_TABLE, OutboxStatus
from ...core.outbox.store import clamp
from ...core.webhooks.endpoints import DuplicateEndpointError
from ..services import AdminServices, get_services
from ..shared.auth import require_admin_key
from ..shared.error_codes import ErrorCode
from ..shared.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class CreateEndpointRequest(BaseModel):
    """Request to register a webhook endpoint."""
    url: str = Field(..., max_length=2048)
    description: Optional[str] = Field(default=None, max_length=255)
    events: List[str] = Field(default_factory=list)
    secret: Optional[str] = None
    is_active: bool = True

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("url must be an absolute http(s) URL")
        return value


class UpdateEndpointRequest(BaseModel):
    """Request to activate or deactivate an endpoint."""
    is_active: bool


def _page(items, total: int, limit: Optional[int], offset: Optional[int]) -> dict:
    return {
        "items": [item.to_dict() for item in items],
        "total": total,
        "limit": clamp(limit, 1, 100, 25),
        "offset": max(int(offset or 0), 0),
    }


async def _requeue(
    services: AdminServices, table: str, resource: str, record_id: str, operator: str
):
    try:
        return await services.dead_letters.retry_entry(table, record_id, operator_id=operator)
    except RecordNotFoundError:
        raise NotFoundError(resource, record_id)
    except InvalidTransitionError as e:
        raise ConflictError(
            f"{resource} {record_id} is {e.current_status}; only FAILED records can be requeued",
            code=ErrorCode.INVALID_STATUS_TRANSITION
        )


# Notifications

@router.get("/notifications")
async def list_notifications(
    status: Optional[OutboxStatus] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """List notification outbox entries, newest first."""
    items, total = await services.notifications.list(
        status=status, search=search, limit=limit, offset=offset
    )
    return _page(items, total, limit, offset)


@router.post("/notifications/{notification_id}/requeue")
async def requeue_notification(
    notification_id: str,
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """Reset a FAILED notification to PENDING with a fresh retry budget."""
    record = await _requeue(
        services, NOTIFICATION_TABLE.name, "Notification", notification_id, operator
    )
    return {"status": "requeued", "item": record.to_dict()}


# Webhook endpoints

@router.get("/webhooks/endpoints")
async def list_webhook_endpoints(
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """List registered webhook endpoints."""
    endpoints = await services.endpoints.list()
    return {"items": [e.to_dict() for e in endpoints], "total": len(endpoints)}


@router.post("/webhooks/endpoints", status_code=201)
async def create_webhook_endpoint(
    body: CreateEndpointRequest,
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """Register a webhook endpoint."""
    try:
        endpoint = await services.endpoints.create(
            url=body.url,
            description=body.description,
            events=body.events,
            secret=body.secret,
            is_active=body.is_active,
        )
    except DuplicateEndpointError as e:
        raise ConflictError(str(e), code=ErrorCode.DUPLICATE_ENDPOINT)
    except ValueError as e:
        raise ValidationError(str(e))

    logger.info(f"Webhook endpoint {endpoint.id} registered by {operator}")
    return endpoint.to_dict()


@router.patch("/webhooks/endpoints/{endpoint_id}")
async def update_webhook_endpoint(
    endpoint_id: str,
    body: UpdateEndpointRequest,
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """Activate or deactivate an endpoint."""
    try:
        endpoint = await services.endpoints.set_active(endpoint_id, body.is_active)
    except RecordNotFoundError:
        raise NotFoundError("Webhook endpoint", endpoint_id)
    return endpoint.to_dict()


@router.post("/webhooks/endpoints/{endpoint_id}/secret")
async def rotate_webhook_secret(
    endpoint_id: str,
    response: Response,
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """Issue a per-endpoint signing secret. It is only ever returned here."""
    try:
        secret = await services.endpoints.rotate_secret(endpoint_id)
    except RecordNotFoundError:
        raise NotFoundError("Webhook endpoint", endpoint_id)
    response.headers["Cache-Control"] = "no-store"
    logger.info(f"Signing secret for webhook endpoint {endpoint_id} rotated by {operator}")
    return {"secret": secret}


# Webhook deliveries

@router.get("/webhooks/deliveries")
async def list_webhook_deliveries(
    endpoint_id: Optional[str] = None,
    status: Optional[OutboxStatus] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """List webhook deliveries, optionally for one endpoint."""
    items, total = await services.deliveries.list(
        status=status,
        filters={"endpoint_id": endpoint_id},
        limit=limit,
        offset=offset,
    )
    return _page(items, total, limit, offset)


@router.post("/webhooks/deliveries/{delivery_id}/redeliver")
async def redeliver_webhook(
    delivery_id: str,
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """Reset a FAILED delivery so the webhook worker sends it again."""
    record = await _requeue(
        services, WEBHOOK_TABLE.name, "Webhook delivery", delivery_id, operator
    )
    return {"status": "requeued", "item": record.to_dict()}


# Outbox

@router.get("/outbox/stats")
async def outbox_stats(
    operator: str = Depends(require_admin_key),
    services: AdminServices = Depends(get_services),
):
    """Per-status counts for both outbox tables."""
    return await services.dead_letters.get_stats()


@router.get("/health")
async def health_check(
    response: Response,
    services: AdminServices = Depends(get_services),
):
    """Returns 200 when the database answers, 503 otherwise."""
    try:
        await services.db.fetchval("SELECT 1")
        database = "healthy"
    except Exception as e:
        logger.warning(f"Health check database query failed: {e}")
        database = "unhealthy"
        response.status_code = 503

    return {
        "status": "healthy" if database == "healthy" else "unhealthy",
        "database": database,
    }
