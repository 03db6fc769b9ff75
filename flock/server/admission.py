"""Bounded admission of concurrent compilations."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class AdmissionController:
    """Counts in-flight compilations; callers beyond the limit wait their turn.

    Args:
        limit: Maximum concurrent compilations, or ``None`` for no bound.
    """

    def __init__(self, limit: int | None = None):
        if limit is not None and limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._active = 0
        self._waiting = 0
        self._cond: asyncio.Condition | None = None

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return self._waiting

    def _condition(self) -> asyncio.Condition:
        # created lazily so it binds to the running loop
        if self._cond is None:
            self._cond = asyncio.Condition()
        return self._cond

    def _has_slot(self) -> bool:
        return self.limit is None or self._active < self.limit

    async def acquire(self) -> None:
        cond = self._condition()
        async with cond:
            self._waiting += 1
            try:
                await cond.wait_for(self._has_slot)
            finally:
                self._waiting -= 1
            self._active += 1

    async def release(self) -> None:
        cond = self._condition()
        async with cond:
            self._active -= 1
            cond.notify()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            await self.release()
