"""
Webhooks Worker

Delivers signed reservation webhooks from webhook_deliveries.

Usage:
    reserve-webhooks-worker
    python -m reserve_delivery.workers.webhooks

Environment Variables:
    WEBHOOK_SECRET: shared signing secret (cycles are skipped without it)
    WEBHOOKS_ENABLED, WEBHOOKS_POLL_INTERVAL_MS, WEBHOOKS_BATCH_SIZE,
    WEBHOOKS_MAX_ATTEMPTS, WEBHOOKS_USER_AGENT
"""

from ..core.outbox.dispatcher import DispatcherSettings, OutboxDispatcher
from ..core.outbox.models import WEBHOOK_TABLE
from ..core.webhooks.endpoints import WebhookEndpointStore
from ..core.webhooks.handler import WebhookDeliveryHandler
from ..core.webhooks.http import WebhookHttpProvider
from .context import WorkerContext
from .runner import run_worker


def build_webhook_dispatcher(ctx: WorkerContext) -> OutboxDispatcher:
    settings = ctx.settings.webhooks
    timeout = float(ctx.settings.outbox.delivery_timeout_seconds)
    handler = WebhookDeliveryHandler(
        endpoints=WebhookEndpointStore(ctx.db, clock=ctx.clock),
        http=WebhookHttpProvider(ctx.http, user_agent=settings.user_agent, timeout=timeout),
        secret=settings.secret,
        clock=ctx.clock,
    )
    return OutboxDispatcher(
        store=ctx.store(WEBHOOK_TABLE),
        handler=handler,
        settings=DispatcherSettings(
            name="webhooks",
            enabled=settings.enabled,
            poll_interval=settings.poll_interval_ms / 1000.0,
            batch_size=settings.batch_size,
            max_attempts=settings.max_attempts,
            delivery_timeout=timeout,
        ),
        policy=ctx.policy,
        clock=ctx.clock,
    )


def main():
    run_worker("webhooks", build_webhook_dispatcher)


if __name__ == "__main__":
    main()
