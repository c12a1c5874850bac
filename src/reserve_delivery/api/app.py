"""
Admin API Application

FastAPI app factory for the operator surface of the outbox workers.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from ..config import Settings, load_settings
from ..core.database.adapter import DatabaseAdapter
from ..core.database.schema import create_schema
from ..core.outbox.clock import Clock
from .routers.admin import router as admin_router
from .services import AdminServices
from .shared.error_handler import register_error_handlers

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[DatabaseAdapter] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the admin app.

    Services are created eagerly so the app is usable without running the
    lifespan (the adapter connects on first query).
    """
    settings = settings or load_settings()
    db = db or DatabaseAdapter(settings.database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - startup and shutdown."""
        await db.connect()
        if not db.is_postgres:
            await create_schema(db)
        logger.info("Admin API started")

        yield

        await db.disconnect()
        logger.info("Admin API stopped")

    app = FastAPI(
        title="Reserve Delivery Admin API",
        description="Operator endpoints for notification and webhook delivery",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.services = AdminServices.build(db, clock=clock)

    register_error_handlers(app)
    app.include_router(admin_router)

    return app

