"""
Notifications Worker

Delivers guest email/SMS notifications from notification_outbox.

Usage:
    reserve-notifications-worker
    python -m reserve_delivery.workers.notifications

Environment Variables:
    NOTIFICATIONS_ENABLED: 1/true/yes/on to send (default: off)
    NOTIFICATIONS_POLL_INTERVAL_MS, NOTIFICATIONS_BATCH_SIZE, NOTIFICATIONS_MAX_ATTEMPTS
    SMTP_HOST (preview transport when unset), TWILIO_* for SMS
"""

import logging

from ..core.notifications.handler import NotificationDeliveryHandler
from ..core.notifications.providers import (
    EmailNotificationProvider,
    PreviewEmailTransport,
    SmsNotificationProvider,
    SmtpEmailTransport,
    TwilioSmsTransport,
)
from ..core.outbox.dispatcher import DispatcherSettings, OutboxDispatcher
from ..core.outbox.models import NOTIFICATION_TABLE
from .context import WorkerContext
from .runner import run_worker

logger = logging.getLogger(__name__)


def build_email_provider(ctx: WorkerContext) -> EmailNotificationProvider:
    smtp = ctx.settings.notifications.smtp
    if smtp.host:
        transport = SmtpEmailTransport(
            host=smtp.host,
            port=smtp.port,
            username=smtp.username,
            password=smtp.password,
            starttls=smtp.starttls,
            timeout=float(ctx.settings.outbox.delivery_timeout_seconds),
        )
    else:
        logger.warning("SMTP_HOST is not set; emails are rendered to the log only")
        transport = PreviewEmailTransport()
    return EmailNotificationProvider(transport, ctx.settings.notifications.email_from)


def build_sms_provider(ctx: WorkerContext) -> SmsNotificationProvider:
    twilio = ctx.settings.notifications.twilio
    if not twilio.is_configured:
        return SmsNotificationProvider()
    return SmsNotificationProvider(TwilioSmsTransport(
        account_sid=twilio.account_sid,
        auth_token=twilio.auth_token,
        from_number=twilio.from_number,
        client=ctx.http,
    ))


def build_notification_dispatcher(ctx: WorkerContext) -> OutboxDispatcher:
    settings = ctx.settings.notifications
    handler = NotificationDeliveryHandler(
        renderer=ctx.renderer,
        email=build_email_provider(ctx),
        sms=build_sms_provider(ctx),
        cipher=ctx.cipher,
    )
    return OutboxDispatcher(
        store=ctx.store(NOTIFICATION_TABLE),
        handler=handler,
        settings=DispatcherSettings(
            name="notifications",
            enabled=settings.enabled,
            poll_interval=settings.poll_interval_ms / 1000.0,
            batch_size=settings.batch_size,
            max_attempts=settings.max_attempts,
            delivery_timeout=float(ctx.settings.outbox.delivery_timeout_seconds),
        ),
        policy=ctx.policy,
        clock=ctx.clock,
    )


def main():
    run_worker("notifications", build_notification_dispatcher)


if __name__ == "__main__":
    main()
