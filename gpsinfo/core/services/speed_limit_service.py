"""Speed limit resolution: the single entry point the UI layer calls.

Owns the bucket cache, the minimum interval between network lookups and the
degradation ladder: cache -> primary provider -> fallback provider ->
last-known-good. Provider errors are logged here and never reach the caller;
"no data" is reported as None.

Concurrent overlapping calls are not serialized: two lookups in flight for
the same bucket may both hit the network and the later write wins.
"""

import logging
from typing import Optional, Tuple

from gpsinfo.domain.events.api_events import EventSink, ProviderFallbackTriggered, dispatch_event
from gpsinfo.domain.interfaces.cache import CacheService
from gpsinfo.domain.interfaces.speed_limit_provider import SpeedLimitProvider
from gpsinfo.domain.models.common import Kmh, Source, UsageStats
from gpsinfo.domain.models.location import LocationFix
from gpsinfo.domain.models.speed_limit import SpeedLimitResult
from gpsinfo.infrastructure.cache.caching_service import DEFAULT_TTL_MS
from gpsinfo.utils.clock import Clock, now_ms
from gpsinfo.utils.geo import bucket_key

logger = logging.getLogger(__name__)

DEFAULT_MIN_REQUEST_INTERVAL_MS = 15000
SPEEDING_TOLERANCE = 0.05  # GPS and speedometer noise


def is_speeding_alert(current_speed_kmh: Optional[Kmh], speed_limit_kmh: Optional[Kmh]) -> bool:
    """True when the current speed exceeds the limit by more than 5%."""
    if not current_speed_kmh or not speed_limit_kmh:
        return False
    return current_speed_kmh > speed_limit_kmh * (1 + SPEEDING_TOLERANCE)


class SpeedLimitResolver:
    """Resolves location fixes to speed limits with caching and fallback."""

    def __init__(
        self,
        cache: CacheService,
        fallback: SpeedLimitProvider,
        primary: Optional[SpeedLimitProvider] = None,
        cache_ttl_ms: int = DEFAULT_TTL_MS,
        min_request_interval_ms: int = DEFAULT_MIN_REQUEST_INTERVAL_MS,
        clock: Clock = now_ms,
        event_sink: EventSink = dispatch_event,
    ):
        """Initializes the resolver.

        Args:
            cache: Bucket cache for resolved results.
            fallback: Provider tried when the primary fails or is disabled.
            primary: Preferred provider; None disables it.
            cache_ttl_ms: Freshness window of a resolved result.
            min_request_interval_ms: Minimum time between network lookups.
            clock: Epoch-milliseconds time source.
            event_sink: Callable receiving domain events.
        """
        self.cache = cache
        self.primary = primary
        self.fallback = fallback
        self.cache_ttl_ms = cache_ttl_ms
        self.min_request_interval_ms = min_request_interval_ms
        self._clock = clock
        self._emit = event_sink
        self.last_known: Optional[SpeedLimitResult] = None
        self.last_request_ms: Optional[int] = None
        logger.info(
            f"SpeedLimitResolver initialized: primary={'enabled' if primary else 'disabled'}, "
            f"fallback={fallback.name}, ttl={cache_ttl_ms}ms, min_interval={min_request_interval_ms}ms"
        )

    def is_primary_enabled(self) -> bool:
        return self.primary is not None

    async def resolve(self, location: LocationFix) -> Optional[SpeedLimitResult]:
        """Returns the speed limit at a location, or None when nothing is available.

        Never raises for provider or network failures.
        """
        try:
            return await self._resolve(location)
        except Exception as e:
            logger.error(f"Error resolving speed limit: {e}", exc_info=True)
            return None

    async def _resolve(self, location: LocationFix) -> Optional[SpeedLimitResult]:
        now = self._clock()
        key = bucket_key(location.latitude, location.longitude)

        # 1. Cache hit
        cached = await self.cache.get(key)
        if cached is not None:
            self.last_known = cached
            return cached

        # 2. Throttle network lookups
        if self.last_request_ms is not None and now - self.last_request_ms < self.min_request_interval_ms:
            logger.debug("Speed limit request throttled - using last known data")
            return self.last_known

        self.last_request_ms = now

        # 3./4. Primary, then fallback
        result = None
        if self.primary is not None:
            result, failure = await self._query(self.primary, location, "primary")
            if result is None:
                self._emit(ProviderFallbackTriggered(
                    failed_provider=self.primary.name,
                    fallback_provider=self.fallback.name,
                    reason=failure or "no_data",
                ))
        if result is None:
            result, _ = await self._query(self.fallback, location, "fallback")

        # 5. Cache and return
        if result is not None:
            await self.cache.set(key, result)
            self.last_known = result
            return result

        # 6. No fresh data
        if self.last_known is not None and self.last_known.age_ms(self._clock()) < self.cache_ttl_ms * 2:
            return self.last_known.degraded()
        return None

    async def _query(
        self, provider: SpeedLimitProvider, location: LocationFix, source: Source
    ) -> Tuple[Optional[SpeedLimitResult], Optional[str]]:
        """Runs one provider, logging its errors.

        Returns:
            The tagged result (or None) and the name of the error raised, if any.
        """
        try:
            logger.debug(f"Trying {provider.name} for speed limit...")
            result = await provider.resolve(location)
        except Exception as e:
            logger.warning(f"{provider.name} failed: {type(e).__name__}: {e}")
            return None, type(e).__name__
        if result is None:
            logger.debug(f"{provider.name} returned no speed limit")
            return None, None
        tagged = result.with_source(source)
        logger.info(f"Speed limit found via {provider.name}: {tagged.speed_limit} km/h ({tagged.road})")
        return tagged, None

    def is_speeding_alert(self, current_speed_kmh: Optional[Kmh], speed_limit_kmh: Optional[Kmh]) -> bool:
        return is_speeding_alert(current_speed_kmh, speed_limit_kmh)

    def get_last_known_speed_limit(self) -> Optional[SpeedLimitResult]:
        return self.last_known

    def get_usage_stats(self) -> Optional[UsageStats]:
        """Primary provider quota usage, or None when the primary is disabled."""
        get_stats = getattr(self.primary, "get_usage_stats", None)
        return get_stats() if get_stats else None

    async def reset(self) -> None:
        """Clears the cache and forgets the last known result."""
        await self.cache.clear()
        self.last_known = None
        self.last_request_ms = None
