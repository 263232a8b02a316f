import asyncio
from collections import OrderedDict
import contextlib
import logging
from typing import AsyncIterator

from domain.models import RecommendationResult


logger = logging.getLogger(__name__)


class RecommendationCache:
    """Process-wide map of cache key to a completed recommendation result.

    By default entries live as long as the process and are never evicted.
    Concurrent misses for one key both generate and the last write wins.
    `capacity` turns on LRU eviction and `single_flight` serialises fills per
    key so only one generation runs.
    """

    def __init__(
        self,
        *,
        capacity: int | None = None,
        single_flight: bool = False,
    ) -> None:
        if capacity is not None and capacity < 1:
            raise ValueError("Capacity must be positive.")
        self.capacity = capacity
        self.single_flight = single_flight
        self._entries: OrderedDict[str, RecommendationResult] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> RecommendationResult | None:
        result = self._entries.get(key)
        if result is not None:
            self._entries.move_to_end(key)
        return result

    def set(self, key: str, result: RecommendationResult) -> None:
        self._entries[key] = result
        self._entries.move_to_end(key)
        if self.capacity is None:
            return
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted %s", evicted)

    @contextlib.asynccontextmanager
    async def filling(self, key: str) -> AsyncIterator[None]:
        """Hold while checking and filling `key`. A no-op unless single flight."""
        if not self.single_flight:
            yield
            return

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]
