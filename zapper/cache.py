"""TTL cache with lazy, caller-triggered refresh and stale-on-error fallback."""
from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from typing import Any, Awaitable, Callable, TypeVar

from .models import CacheEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TTLCache:
    """Memoize async fetches per key.

    A fresh entry is served without I/O. An expired or missing entry triggers
    the fetcher; if the fetcher fails the previous value is served (stale) and
    the failure is only logged. Without any previous value the failure
    propagates to the caller.

    Concurrent callers missing on the same key share one fetch: the first
    holds the key's lock, the rest wait and then read the stored entry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _fresh(self, entry: CacheEntry[Any] | None, ttl_seconds: float) -> bool:
        return entry is not None and self._clock() - entry.fetched_at < ttl_seconds

    async def get_or_fetch(
        self,
        key: str,
        ttl_seconds: float,
        fetcher: Callable[[], Awaitable[T]],
    ) -> T:
        entry = self._entries.get(key)
        if self._fresh(entry, ttl_seconds):
            return entry.value

        async with self._locks[key]:
            # another caller may have refreshed while we waited
            entry = self._entries.get(key)
            now = self._clock()
            if self._fresh(entry, ttl_seconds):
                return entry.value

            if entry is None:
                logger.debug("Cache miss for %s", key)
            else:
                logger.debug(
                    "Cache entry for %s expired (age %.1fs)", key, now - entry.fetched_at
                )

            try:
                value = await fetcher()
            except Exception as e:
                if entry is not None:
                    logger.warning(
                        "Refresh of %s failed (%s); serving stale value from %.1fs ago",
                        key,
                        e,
                        now - entry.fetched_at,
                    )
                    return entry.value
                logger.error("Fetch of %s failed with no cached value: %s", key, e)
                raise

            self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())
            return value

    def peek(self, key: str) -> CacheEntry[Any] | None:
        return self._entries.get(key)
