"""
Shared Test Fixtures
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from reserve_delivery.core.database import DatabaseAdapter, DatabaseConfig, create_schema

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock. sleep() advances time instead of waiting."""

    def __init__(self, start: datetime = START):
        self.current = start
        self.sleeps = []

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    async def sleep(self, seconds: float, stop: Optional[asyncio.Event] = None) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds=seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def db(tmp_path):
    """SQLite database with the outbox schema applied."""
    adapter = DatabaseAdapter(DatabaseConfig(
        backend="sqlite",
        sqlite_path=str(tmp_path / "outbox.db"),
    ))
    await adapter.connect()
    await create_schema(adapter)
    yield adapter
    await adapter.disconnect()
