"""Watches incoming fixes and reports the speed limit and speeding state."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from gpsinfo.core.services.location_feed import LocationFeed
from gpsinfo.core.services.speed_limit_service import SpeedLimitResolver
from gpsinfo.domain.models.common import Kmh
from gpsinfo.domain.models.location import LocationFix
from gpsinfo.domain.models.speed_limit import SpeedLimitResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeedStatus:
    """What the dashboard shows for one fix."""
    location: LocationFix
    speed_kmh: Optional[Kmh]
    speed_limit: Optional[SpeedLimitResult]
    is_speeding: bool


class SpeedMonitor:
    """Resolves the limit for every fix and evaluates the speeding alert."""

    def __init__(
        self,
        resolver: SpeedLimitResolver,
        on_status: Optional[Callable[[SpeedStatus], None]] = None,
    ):
        """Initializes the monitor.

        Args:
            resolver: Resolver used for every fix.
            on_status: Optional callback receiving each new status.
        """
        self.resolver = resolver
        self.on_status = on_status
        self.last_status: Optional[SpeedStatus] = None

    def attach(self, feed: LocationFeed) -> None:
        feed.add_listener(self.handle_fix)

    def detach(self, feed: LocationFeed) -> None:
        feed.remove_listener(self.handle_fix)

    async def handle_fix(self, fix: LocationFix) -> SpeedStatus:
        speed_kmh = LocationFeed.convert_speed_to_kmh(fix.speed)
        result = await self.resolver.resolve(fix)
        limit = result.speed_limit if result is not None else None
        is_speeding = self.resolver.is_speeding_alert(speed_kmh, limit)
        if is_speeding:
            logger.warning(f"Speeding: {speed_kmh:.0f} km/h in a {limit} km/h zone")

        status = SpeedStatus(location=fix, speed_kmh=speed_kmh, speed_limit=result, is_speeding=is_speeding)
        self.last_status = status
        if self.on_status is not None:
            self.on_status(status)
        return status
