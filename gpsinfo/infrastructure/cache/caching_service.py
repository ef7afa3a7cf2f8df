"""Concrete in-memory implementation of the Caching Service.

Stores resolved speed limits by spatial bucket. An entry's age is measured
from its result's resolution timestamp; expired entries are swept lazily on
every write, there is no background timer.
"""

import logging
from typing import Dict, Optional

# Domain Layer Imports
from gpsinfo.domain.interfaces.cache import CacheService
from gpsinfo.domain.models.common import CacheKey
from gpsinfo.domain.models.speed_limit import SpeedLimitResult
from gpsinfo.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 5 * 60 * 1000  # 5 minutes
DEFAULT_MAX_ITEMS = 1000


class SpeedLimitCache(CacheService):
    """Bucket-keyed TTL cache for speed limit results."""

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        max_items: int = DEFAULT_MAX_ITEMS,
        clock: Clock = now_ms,
    ):
        """Initializes the cache.

        Args:
            ttl_ms: Time-to-live of an entry, in milliseconds.
            max_items: Size bound; the oldest insertions are evicted first.
            clock: Epoch-milliseconds time source.
        """
        self.entries: Dict[CacheKey, SpeedLimitResult] = {}
        self.ttl_ms = ttl_ms
        self.max_items = max_items
        self._clock = clock
        logger.info(f"SpeedLimitCache initialized (ttl={ttl_ms}ms, max={max_items}).")

    def is_fresh(self, result: SpeedLimitResult, now: Optional[int] = None) -> bool:
        now = self._clock() if now is None else now
        return result.age_ms(now) < self.ttl_ms

    def sweep(self) -> int:
        """Removes expired entries and evicts the oldest ones if over the size bound."""
        now = self._clock()
        expired_keys = [k for k, v in self.entries.items() if v.age_ms(now) > self.ttl_ms]
        for k in expired_keys:
            del self.entries[k]

        # Oldest by insertion order (dicts keep it).
        while len(self.entries) > self.max_items:
            oldest_key = next(iter(self.entries))
            del self.entries[oldest_key]

        if expired_keys:
            logger.debug(f"Swept {len(expired_keys)} expired cache entries.")
        return len(expired_keys)

    # --- CacheService Interface Implementation ---

    async def get(self, key: CacheKey) -> Optional[SpeedLimitResult]:
        entry = self.entries.get(key)
        if entry is not None and self.is_fresh(entry):
            logger.debug(f"Cache hit for key: {key}")
            return entry
        logger.debug(f"Cache miss for key: {key}")
        return None

    async def set(self, key: CacheKey, value: SpeedLimitResult) -> None:
        # Re-insert so a refreshed bucket moves to the end of the eviction order.
        self.entries.pop(key, None)
        self.entries[key] = value
        self.sweep()
        logger.debug(f"Stored speed limit in cache: key={key}")

    async def delete(self, key: CacheKey) -> None:
        if self.entries.pop(key, None) is not None:
            logger.debug(f"Deleted item from cache: key={key}")

    async def clear(self) -> None:
        self.entries.clear()
        logger.info("Cleared speed limit cache.")

    def __len__(self) -> int:
        return len(self.entries)
