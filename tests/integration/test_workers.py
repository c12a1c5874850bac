"""
Tests for worker composition and lifecycle.
"""

from reserve_delivery.config import load_settings
from reserve_delivery.core.notifications.providers import PreviewEmailTransport, SmtpEmailTransport
from reserve_delivery.core.outbox import NOTIFICATION_TABLE, WEBHOOK_TABLE, OutboxStatus
from reserve_delivery.workers import (
    WorkerContext,
    WorkerRunner,
    build_notification_dispatcher,
    build_webhook_dispatcher,
)


def worker_settings(tmp_path, **environ):
    environ.setdefault("SQLITE_PATH", str(tmp_path / "worker.db"))
    return load_settings(environ)


class TestComposition:
    """Settings flow into the dispatchers."""

    async def test_notification_dispatcher(self, tmp_path, clock):
        settings = worker_settings(
            tmp_path,
            NOTIFICATIONS_ENABLED="true",
            NOTIFICATIONS_POLL_INTERVAL_MS="250",
            NOTIFICATIONS_BATCH_SIZE="3",
            SMTP_HOST="smtp.example.test",
        )
        ctx = await WorkerContext.create(settings, clock=clock)
        try:
            dispatcher = build_notification_dispatcher(ctx)

            assert dispatcher.settings.enabled is True
            assert dispatcher.settings.poll_interval == 0.25
            assert dispatcher.settings.batch_size == 3
            assert dispatcher.settings.max_attempts == 5
            assert dispatcher.store.table is NOTIFICATION_TABLE
            assert dispatcher.store.worker_id == ctx.worker_id
            assert isinstance(dispatcher.handler.email.transport, SmtpEmailTransport)
            assert dispatcher.handler.sms.is_configured is False
        finally:
            await ctx.close()

    async def test_preview_email_without_smtp_host(self, tmp_path, clock):
        ctx = await WorkerContext.create(worker_settings(tmp_path), clock=clock)
        try:
            dispatcher = build_notification_dispatcher(ctx)
            assert isinstance(dispatcher.handler.email.transport, PreviewEmailTransport)
            assert dispatcher.settings.enabled is False
        finally:
            await ctx.close()

    async def test_webhook_dispatcher(self, tmp_path, clock):
        settings = worker_settings(tmp_path, WEBHOOK_SECRET="whsec", WEBHOOKS_MAX_ATTEMPTS="4")
        ctx = await WorkerContext.create(settings, clock=clock)
        try:
            dispatcher = build_webhook_dispatcher(ctx)

            assert dispatcher.store.table is WEBHOOK_TABLE
            assert dispatcher.settings.max_attempts == 4
            assert dispatcher.handler.secret == "whsec"
        finally:
            await ctx.close()


class TestWorkerRunner:

    async def test_shutdown_before_start_exits_cleanly(self, tmp_path, clock):
        settings = worker_settings(tmp_path, WEBHOOK_SECRET="whsec")
        ctx = await WorkerContext.create(settings, clock=clock)
        runner = WorkerRunner("webhooks", build_webhook_dispatcher, settings)

        runner.request_shutdown()
        await runner.run(ctx)

        assert runner.health_check() == {
            "worker": "webhooks",
            "status": "stopping",
            "shutdown_requested": True,
        }

    async def test_context_creates_sqlite_schema(self, tmp_path, clock):
        ctx = await WorkerContext.create(worker_settings(tmp_path), clock=clock)
        try:
            counts = await ctx.store(NOTIFICATION_TABLE).stats()
            assert counts == {status.value: 0 for status in OutboxStatus}
        finally:
            await ctx.close()
