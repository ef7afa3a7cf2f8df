"""Geometry helpers: great-circle distances and spatial cache buckets."""

import math
from typing import Iterable, Mapping

from gpsinfo.domain.models.common import CacheKey, Meters

EARTH_RADIUS_KM = 6371.0
# 3 decimal places is ~100 m: coarser than GPS jitter, fine enough to reuse.
BUCKET_PRECISION = 3


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_to_vertices_m(lat: float, lon: float, geometry: Iterable[Mapping[str, float]]) -> Meters:
    """Distance in metres from a point to the closest vertex of a polyline.

    Only vertices are considered, not the segments between them. Returns
    ``math.inf`` for an empty geometry.
    """
    closest_km = math.inf
    for vertex in geometry:
        distance = haversine_km(lat, lon, vertex["lat"], vertex["lon"])
        if distance < closest_km:
            closest_km = distance
    return Meters(closest_km * 1000)


def bucket_key(latitude: float, longitude: float, precision: int = BUCKET_PRECISION) -> CacheKey:
    """Rounds a coordinate pair into the cache bucket it belongs to."""
    return CacheKey(f"{latitude:.{precision}f},{longitude:.{precision}f}")
