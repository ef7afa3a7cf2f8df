"""Monthly quota accounting for a metered provider."""

import logging
from datetime import datetime, timezone

from gpsinfo.domain.models.common import UsageStats
from gpsinfo.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_QUOTA = 25000  # HERE free tier
QUOTA_PERIOD_MS = 30 * 24 * 60 * 60 * 1000


class UsageCounter:
    """Counts requests against a monthly quota, resetting every 30 days."""

    def __init__(self, monthly_quota: int = DEFAULT_MONTHLY_QUOTA, clock: Clock = now_ms):
        self.monthly_quota = monthly_quota
        self._clock = clock
        self.request_count = 0
        self.last_reset_ms = clock()

    def _maybe_reset(self) -> None:
        now = self._clock()
        if now - self.last_reset_ms > QUOTA_PERIOD_MS:
            logger.info(f"Quota period elapsed, resetting usage counter (was {self.request_count}).")
            self.request_count = 0
            self.last_reset_ms = now

    def has_capacity(self) -> bool:
        """True while the current period still has requests left."""
        self._maybe_reset()
        return self.request_count < self.monthly_quota

    def increment(self) -> None:
        self.request_count += 1

    def stats(self) -> UsageStats:
        reset_ms = self.last_reset_ms + QUOTA_PERIOD_MS
        return UsageStats(
            request_count=self.request_count,
            remaining_requests=max(0, self.monthly_quota - self.request_count),
            reset_time=datetime.fromtimestamp(reset_ms / 1000, tz=timezone.utc),
        )
