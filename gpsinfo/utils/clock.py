"""Time helpers shared by the resolver, cache and providers.

Components take a clock callable instead of reading the time themselves so
tests can drive time explicitly.
"""

import time
from typing import Callable, Optional

from gpsinfo.domain.models.common import EpochMillis

Clock = Callable[[], int]

def now_ms() -> EpochMillis:
    """Current wall-clock time in epoch milliseconds."""
    return EpochMillis(int(time.time() * 1000))


class TrackClock:
    """Clock that reports a recorded track's time while one is set.

    Replaying a track takes milliseconds of wall-clock time, so the resolver's
    request interval and the cache TTL have to run on the fixes' own
    timestamps instead. Outside a replay it reads the wrapped clock.
    """

    def __init__(self, fallback: Clock = now_ms):
        self._fallback = fallback
        self.track_time: Optional[EpochMillis] = None

    def __call__(self) -> EpochMillis:
        if self.track_time is not None:
            return self.track_time
        return EpochMillis(self._fallback())

    def set(self, timestamp: int) -> None:
        self.track_time = EpochMillis(timestamp)

    def release(self) -> None:
        """Goes back to the wrapped clock."""
        self.track_time = None
