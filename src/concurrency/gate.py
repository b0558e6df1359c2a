# src/concurrency/gate.py — v1
"""Counting gate bounding how many analysis operations run at once.

Both file processing and diff-chunk processing funnel every call through a
ConcurrencyGate so the bound is enforced in one place.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from reviewpipe.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyGate:
    """Async counting semaphore with in-flight bookkeeping.

    Waiters are woken in FIFO order (asyncio semaphore semantics). Releasing
    more permits than were acquired raises ValueError.

    Args:
        limit: Maximum number of simultaneous holders (>= 1).
        name: Label used in log messages.
    """

    def __init__(self, limit: int, name: str = "gate") -> None:
        if limit < 1:
            raise ConfigurationError(f"ConcurrencyGate limit must be >= 1, got {limit}")
        self._limit = limit
        self._name = name
        self._semaphore = asyncio.BoundedSemaphore(limit)
        self._in_flight = 0
        self._waiting = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def waiting(self) -> int:
        return self._waiting

    @property
    def peak_in_flight(self) -> int:
        """Highest number of simultaneous holders observed so far."""
        return self._peak

    async def acquire(self) -> None:
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1
        self._in_flight += 1
        self._peak = max(self._peak, self._in_flight)

    def release(self) -> None:
        self._semaphore.release()
        self._in_flight -= 1

    async def __aenter__(self) -> ConcurrencyGate:
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.release()

    async def run(
        self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any,
    ) -> T:
        """Await fn(*args, **kwargs) while holding one permit."""
        async with self:
            logger.debug(
                "Gate '%s': %d/%d in flight, %d waiting",
                self._name, self._in_flight, self._limit, self._waiting,
            )
            return await fn(*args, **kwargs)
