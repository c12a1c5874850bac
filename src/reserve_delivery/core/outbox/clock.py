"""
Time source for the dispatcher.

Injected so tests can fast-forward poll sleeps and backoff delays.
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    async def sleep(self, seconds: float, stop: Optional[asyncio.Event] = None) -> None:
        """Sleep for ``seconds`` or until ``stop`` is set, whichever is first."""
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float, stop: Optional[asyncio.Event] = None) -> None:
        if stop is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
