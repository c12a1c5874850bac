"""
Integrator Webhooks

Endpoint registry, HMAC signing, HTTP transport and the dispatcher handler
for the webhook_deliveries table.
"""

from .endpoints import DuplicateEndpointError, WebhookEndpointStore, WebhookPublisher, generate_secret
from .handler import WebhookDeliveryHandler, build_envelope, build_headers
from .http import DEFAULT_USER_AGENT, WebhookHttpProvider
from .payloads import WEBHOOK_EVENTS, WebhookPayload
from .signing import (
    compute_signature,
    parse_signature_header,
    serialize_body,
    signature_header,
    signature_input,
    verify_signature,
)

__all__ = [
    "DuplicateEndpointError",
    "WebhookEndpointStore",
    "WebhookPublisher",
    "generate_secret",
    "WebhookDeliveryHandler",
    "build_envelope",
    "build_headers",
    "DEFAULT_USER_AGENT",
    "WebhookHttpProvider",
    "WEBHOOK_EVENTS",
    "WebhookPayload",
    "compute_signature",
    "parse_signature_header",
    "serialize_body",
    "signature_header",
    "signature_input",
    "verify_signature",
]
