"""TTL cache shared by concurrent requests.

Entries are replaced per key (insert-or-replace); there is no cross-key
locking. Concurrent misses for the same key share a single upstream fetch.
Expired entries are swept on write at most once per TTL, and an optional
size bound evicts the oldest entries first.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Read-mostly async cache with per-entry expiry.

    Example:
        cache = TTLCache(ttl_seconds=300)
        pairs = await cache.get_or_fetch((chain_id, address), lambda: provider.fetch(...))
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_size: Optional[int] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._next_sweep = clock() + ttl_seconds
        self._entries: dict[Hashable, tuple[float, T]] = {}
        self._pending: dict[Hashable, asyncio.Future] = {}

    def get(self, key: Hashable) -> Optional[T]:
        """Return a fresh cached value, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: Hashable, value: T) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self.prune(now)
        # Re-inserting moves the key to the end of the eviction order
        self._entries.pop(key, None)
        self._entries[key] = (now, value)
        if self.max_size is not None:
            while len(self._entries) > self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    def prune(self, now: Optional[float] = None) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock() if now is None else now
        expired = [
            key
            for key, (stored_at, _) in self._entries.items()
            if now - stored_at > self.ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self.ttl_seconds
        if expired:
            logger.debug(f"Pruned {len(expired)} expired cache entries")
        return len(expired)

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_fetch(self, key: Hashable, fetch: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value or fetch, store and return it.

        Args:
            key: Cache key
            fetch: Zero-argument coroutine factory producing the value

        Returns:
            The cached or freshly fetched value. Failures are not cached.
        """
        value = self.get(key)
        if value is not None:
            return value

        pending = self._pending.get(key)
        if pending is not None:
            logger.debug(f"Cache miss for {key} joins in-flight fetch")
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                # The request that owned the fetch was cancelled, not this one
                return await self.get_or_fetch(key, fetch)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            value = await fetch()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so a fetch nobody else awaited does not warn
            future.exception()
            raise
        else:
            self.set(key, value)
            future.set_result(value)
            return value
        finally:
            self._pending.pop(key, None)
