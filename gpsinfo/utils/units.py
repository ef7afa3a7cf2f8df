"""Speed unit parsing and conversion.

Everything leaving this module is in km/h.
"""

import re
from typing import Optional

from gpsinfo.domain.models.common import Kmh

MPH_TO_KMH = 1.60934
MPS_TO_KMH = 3.6

_LEADING_NUMBER = re.compile(r"(\d+)")


def mph_to_kmh(value: float) -> int:
    return round(value * MPH_TO_KMH)


def mps_to_kmh(value: Optional[float]) -> Optional[Kmh]:
    """Converts metres per second to km/h, keeping None as None."""
    if value is None:
        return None
    return Kmh(value * MPS_TO_KMH)


def parse_speed_limit(maxspeed: Optional[str]) -> Optional[int]:
    """Parses an OpenStreetMap ``maxspeed`` tag into km/h.

    The first integer in the string is the value; a ``mph`` suffix anywhere in
    the tag (any case) marks it as miles per hour. Tags without digits
    (``"none"``, ``"signals"``, ``"RU:urban"``) yield None.

    >>> parse_speed_limit("50 mph")
    80
    >>> parse_speed_limit("60")
    60
    """
    if not maxspeed:
        return None
    cleaned = maxspeed.lower().strip()
    match = _LEADING_NUMBER.search(cleaned)
    if not match:
        return None
    value = int(match.group(1))
    if "mph" in cleaned:
        return mph_to_kmh(value)
    return value
