"""Domain models related to speed limit resolution."""

from dataclasses import dataclass, replace
from typing import Optional

from .common import Accuracy, EpochMillis, Source, UNIT_KMH

@dataclass(frozen=True)
class SpeedLimitResult:
    """Resolved speed limit for a location.

    Results are never mutated in place: tagging a source or degrading the
    accuracy produces a new object.
    """
    speed_limit: Optional[int]  # km/h, None when the limit is unknown
    road: Optional[str]
    accuracy: Accuracy
    timestamp: EpochMillis
    unit: str = UNIT_KMH
    source: Optional[Source] = None

    def with_source(self, source: Source) -> "SpeedLimitResult":
        return replace(self, source=source)

    def degraded(self) -> "SpeedLimitResult":
        """Copy of this result marked as low accuracy (served past its TTL)."""
        return replace(self, accuracy="low")

    def age_ms(self, now: int) -> int:
        return now - self.timestamp
