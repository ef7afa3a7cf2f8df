"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the work
to the resolver and the speed monitor, rendering results through the
UserInterface.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from gpsinfo.core.services.location_feed import LocationFeed
from gpsinfo.core.services.speed_limit_service import SpeedLimitResolver
from gpsinfo.core.services.speed_monitor import SpeedMonitor, SpeedStatus
from gpsinfo.domain.interfaces.user_interface import UserInterface
from gpsinfo.domain.models.location import LocationFix
from gpsinfo.utils.clock import TrackClock, now_ms

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def load_track(path: Path) -> List[LocationFix]:
    """Reads a recorded track: a JSON array of fixes, or an object with a 'fixes' array.

    Raises:
        ValueError: If the file is not valid JSON or a fix is invalid.
        OSError: If the file cannot be read.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("fixes")
    if not isinstance(data, list):
        raise ValueError("Track must be a JSON array of fixes or an object with a 'fixes' array")
    return [LocationFix.from_dict(entry) for entry in data]


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        resolver: SpeedLimitResolver,
        feed: LocationFeed,
        monitor: SpeedMonitor,
        ui: UserInterface,
        track_clock: Optional[TrackClock] = None,
    ):
        """Initializes the CommandHandler with required services.

        ``track_clock`` is the clock shared by the resolver, cache and
        providers; during a replay it is set to each fix's timestamp.
        """
        self.resolver = resolver
        self.feed = feed
        self.monitor = monitor
        self.ui = ui
        self.track_clock = track_clock

    async def handle_lookup(
        self,
        latitude: float,
        longitude: float,
        speed_kmh: Optional[float] = None,
        show_usage: bool = False,
    ) -> int:
        """Handles the 'lookup' command for a single point."""
        logger.info(f"Handling 'lookup' for {latitude},{longitude}")
        try:
            fix = LocationFix(
                latitude=latitude,
                longitude=longitude,
                timestamp=now_ms(),
                speed=None if speed_kmh is None else speed_kmh / 3.6,
            )
        except ValueError as e:
            self.ui.display_error(str(e))
            return EXIT_FAILURE

        result = await self.resolver.resolve(fix)
        limit = result.speed_limit if result else None
        self.ui.display_speed_limit(
            result,
            speed_kmh=speed_kmh,
            is_speeding=self.resolver.is_speeding_alert(speed_kmh, limit),
        )
        if show_usage:
            self.ui.display_usage(self.resolver.get_usage_stats())
        return EXIT_OK

    async def handle_replay(self, track_path: Path, show_usage: bool = False) -> int:
        """Handles the 'replay' command: feeds a recorded track through the monitor."""
        logger.info(f"Handling 'replay' for track: {track_path}")
        try:
            fixes = load_track(track_path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read track {track_path}: {e}")
            self.ui.display_error(f"Could not read track {track_path}: {e}")
            return EXIT_FAILURE

        if not fixes:
            self.ui.display_warning("Track contains no fixes.")
            return EXIT_OK

        statuses: List[SpeedStatus] = []
        self.monitor.attach(self.feed)
        try:
            for fix in fixes:
                if self.track_clock is not None:
                    self.track_clock.set(fix.timestamp)
                await self.feed.publish(fix)
                if self.monitor.last_status is not None and self.monitor.last_status.location is fix:
                    statuses.append(self.monitor.last_status)
        finally:
            self.monitor.detach(self.feed)
            if self.track_clock is not None:
                self.track_clock.release()

        self.ui.display_statuses(statuses)
        speeding = sum(1 for s in statuses if s.is_speeding)
        self.ui.display_info(f"Replayed {len(statuses)} fixes, {speeding} speeding.")
        if show_usage:
            self.ui.display_usage(self.resolver.get_usage_stats())
        return EXIT_OK
