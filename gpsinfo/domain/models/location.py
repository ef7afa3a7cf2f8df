"""Domain model for location fixes delivered by the sensing layer."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .common import EpochMillis


@dataclass(frozen=True)
class LocationFix:
    """Immutable snapshot of a single position report.

    Attributes:
        latitude: Degrees, -90..90.
        longitude: Degrees, -180..180.
        altitude: Metres above sea level, if known.
        speed: Metres per second, if known. Never negative.
        accuracy: Horizontal accuracy radius in metres, if known.
        timestamp: Capture time in epoch milliseconds.
    """
    latitude: float
    longitude: float
    timestamp: EpochMillis
    altitude: Optional[float] = None
    speed: Optional[float] = None
    accuracy: Optional[float] = None

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")
        if self.speed is not None and self.speed < 0:
            raise ValueError(f"Speed must be non-negative, got {self.speed}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationFix":
        """Builds a fix from a plain mapping (e.g. one entry of a recorded track).

        Raises:
            ValueError: If a required field is missing or a value is invalid.
        """
        try:
            return cls(
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
                timestamp=EpochMillis(int(data.get("timestamp", 0))),
                altitude=_optional_float(data.get("altitude")),
                speed=_optional_float(data.get("speed")),
                accuracy=_optional_float(data.get("accuracy")),
            )
        except KeyError as e:
            raise ValueError(f"Location fix is missing field {e}") from e
        except TypeError as e:
            raise ValueError(f"Invalid location fix {data!r}: {e}") from e


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)
