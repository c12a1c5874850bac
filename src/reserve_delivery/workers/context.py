"""
Worker Context

Composition root shared by both worker processes: one database adapter,
one HTTP client, one template renderer and the clock, created at startup
and closed on shutdown.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx

from ..config import Settings
from ..core.database.adapter import DatabaseAdapter
from ..core.database.schema import create_schema
from ..core.notifications.renderer import TemplateRenderer
from ..core.outbox.backoff import BackoffPolicy
from ..core.outbox.clock import Clock, SystemClock
from ..core.outbox.models import OutboxTable
from ..core.outbox.store import OutboxStore, default_worker_id
from ..core.privacy import PassthroughPiiCipher, PiiCipher

logger = logging.getLogger(__name__)


@dataclass
class WorkerContext:
    settings: Settings
    db: DatabaseAdapter
    http: httpx.AsyncClient
    renderer: TemplateRenderer
    cipher: PiiCipher
    clock: Clock
    policy: BackoffPolicy
    worker_id: str

    @classmethod
    async def create(
        cls,
        settings: Settings,
        db: Optional[DatabaseAdapter] = None,
        http: Optional[httpx.AsyncClient] = None,
        cipher: Optional[PiiCipher] = None,
        clock: Optional[Clock] = None,
    ) -> "WorkerContext":
        """Connect the database and build the shared collaborators."""
        db = db or DatabaseAdapter(settings.database)
        await db.connect()
        if not db.is_postgres:
            # PostgreSQL is migrated by reserve-migrate.
            await create_schema(db)

        timeout = float(settings.outbox.delivery_timeout_seconds)
        return cls(
            settings=settings,
            db=db,
            http=http or httpx.AsyncClient(timeout=timeout),
            renderer=TemplateRenderer(settings.notifications.templates_dir),
            cipher=cipher or PassthroughPiiCipher(),
            clock=clock or SystemClock(),
            policy=BackoffPolicy(
                cap_minutes=settings.outbox.backoff_cap_minutes,
                jitter_ratio=settings.outbox.backoff_jitter,
            ),
            worker_id=default_worker_id(),
        )

    def store(self, table: OutboxTable) -> OutboxStore:
        return OutboxStore(
            self.db,
            table,
            clock=self.clock,
            worker_id=self.worker_id,
            claim_lease=timedelta(seconds=self.settings.outbox.claim_lease_seconds),
        )

    async def close(self):
        await self.http.aclose()
        await self.db.disconnect()
        logger.info(f"Worker context {self.worker_id} closed")
