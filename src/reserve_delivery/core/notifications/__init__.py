"""
Guest Notifications

Template rendering, email/SMS providers and the dispatcher handler for the
notification_outbox table.
"""

from .handler import NotificationDeliveryHandler, build_template_variables, resolve_subject
from .payloads import NOTIFICATION_CHANNELS, NOTIFICATION_EVENTS, NotificationPayload
from .renderer import DEFAULT_TEMPLATES_DIR, TemplateRenderer, interpolate

__all__ = [
    "NotificationDeliveryHandler",
    "build_template_variables",
    "resolve_subject",
    "NOTIFICATION_CHANNELS",
    "NOTIFICATION_EVENTS",
    "NotificationPayload",
    "DEFAULT_TEMPLATES_DIR",
    "TemplateRenderer",
    "interpolate",
]
