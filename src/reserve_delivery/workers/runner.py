"""
Worker Runner

Runs one outbox dispatcher as a long-lived process with graceful shutdown.

The first SIGTERM/SIGINT stops new cycles: the item in flight finishes,
claimed but unprocessed rows are released and the process exits cleanly.
A second signal forces exit.

Usage:
    run_worker("webhooks", build_webhook_dispatcher)
"""

import asyncio
import signal
import sys
import logging
from typing import Callable, Optional

from ..config import Settings, load_settings
from ..core.observability import configure_logging, init_metrics, init_tracing
from ..core.outbox.dispatcher import OutboxDispatcher
from .context import WorkerContext

logger = logging.getLogger(__name__)

DispatcherFactory = Callable[[WorkerContext], OutboxDispatcher]


class WorkerRunner:
    """
    Manages a dispatcher lifecycle with graceful shutdown.
    """

    def __init__(
        self,
        name: str,
        build_dispatcher: DispatcherFactory,
        settings: Optional[Settings] = None,
    ):
        self.name = name
        self.build_dispatcher = build_dispatcher
        self.settings = settings or load_settings()
        self.dispatcher: Optional[OutboxDispatcher] = None
        self._shutdown_event = asyncio.Event()
        self._shutdown_requested = False

    def _setup_signal_handlers(self):
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_shutdown_signal, sig)

    def _handle_shutdown_signal(self, sig: signal.Signals):
        """Handle shutdown signal."""
        if self._shutdown_requested:
            logger.warning(f"Received {sig.name} again, forcing exit")
            sys.exit(1)

        logger.info(f"Received {sig.name}; shutting down {self.name} worker")
        self.request_shutdown()

    def request_shutdown(self):
        self._shutdown_requested = True
        self._shutdown_event.set()

    async def run(self, ctx: Optional[WorkerContext] = None):
        """Run the dispatcher until shutdown is requested."""
        logger.info(f"Starting {self.name} worker")

        if ctx is None:
            self._setup_signal_handlers()
            ctx = await WorkerContext.create(self.settings)

        try:
            self.dispatcher = self.build_dispatcher(ctx)
            await self.dispatcher.run(self._shutdown_event)
        except Exception as e:
            logger.error(f"{self.name} worker crashed: {e}", exc_info=True)
            raise
        finally:
            await ctx.close()
            logger.info(f"{self.name} worker stopped")

    def health_check(self) -> dict:
        """Return health status for monitoring."""
        return {
            "worker": self.name,
            "status": "stopping" if self._shutdown_requested else "running",
            "shutdown_requested": self._shutdown_requested,
        }


def setup_observability(settings: Settings, service_name: str):
    observability = settings.observability
    configure_logging(
        level=observability.log_level,
        structured=observability.log_structured,
        service_name=service_name,
    )
    init_tracing(service_name=service_name, otlp_endpoint=observability.otlp_endpoint)
    init_metrics(service_name=service_name, otlp_endpoint=observability.otlp_endpoint)


def run_worker(name: str, build_dispatcher: DispatcherFactory):
    """Console entry point body shared by both workers."""
    settings = load_settings()
    setup_observability(settings, f"reserve-{name}-worker")
    runner = WorkerRunner(name, build_dispatcher, settings)
    asyncio.run(runner.run())
