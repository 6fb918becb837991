"""
MindPair — Read-through cache for rarely-changing reference data.

The first caller triggers the load; concurrent callers await the same
in-flight load instead of issuing their own.  A failed load is not cached,
so the next caller retries.  ``invalidate()`` drops the cached value and
detaches any in-flight load from the cache.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class ReadThroughCache(Generic[T]):
    def __init__(self, loader: Callable[[], Awaitable[T]]) -> None:
        self._loader = loader
        self._value: T | None = None
        self._loaded = False
        self._inflight: asyncio.Future[T] | None = None
        self._generation = 0

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def get(self) -> T:
        if self._loaded:
            return self._value  # type: ignore[return-value]
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._load(self._generation))
        # A cancelled waiter must not cancel the load shared with others
        return await asyncio.shield(self._inflight)

    def invalidate(self) -> None:
        self._generation += 1
        self._value = None
        self._loaded = False
        self._inflight = None

    async def _load(self, generation: int) -> T:
        try:
            value = await self._loader()
        except BaseException:
            if generation == self._generation:
                self._inflight = None
            raise

        if generation == self._generation:
            self._value = value
            self._loaded = True
            self._inflight = None
        return value
