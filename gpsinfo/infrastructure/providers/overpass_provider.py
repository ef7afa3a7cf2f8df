"""Fallback speed limit provider backed by the OpenStreetMap Overpass API.

Queries ways tagged with both ``highway`` and ``maxspeed`` around the point
and picks the way whose closest vertex is nearest. One attempt per call: no
retries and no quota accounting.
"""

import logging
import math
from typing import Any, List, Optional, Tuple, TypedDict

import httpx

from gpsinfo.domain.exceptions import MalformedResponseError
from gpsinfo.domain.interfaces.speed_limit_provider import SpeedLimitProvider
from gpsinfo.domain.models.common import Accuracy
from gpsinfo.domain.models.location import LocationFix
from gpsinfo.domain.models.speed_limit import SpeedLimitResult
from gpsinfo.infrastructure.resilience.api_retry import (
    check_response, json_body, translate_transport_error,
)
from gpsinfo.utils.clock import Clock, now_ms
from gpsinfo.utils.geo import distance_to_vertices_m
from gpsinfo.utils.units import parse_speed_limit

logger = logging.getLogger(__name__)

OVERPASS_URL = "https://overpass-api.de/api/interpreter"
DEFAULT_RADIUS_M = 200
DEFAULT_REQUEST_TIMEOUT_S = 10.0
HIGH_ACCURACY_MAX_M = 20.0
MEDIUM_ACCURACY_MAX_M = 35.0
UNKNOWN_ROAD = "Unknown Road"


# --- Response schemas ---

class OverpassVertex(TypedDict):
    lat: float
    lon: float

class OverpassTags(TypedDict, total=False):
    highway: str
    maxspeed: str
    name: str
    ref: str

class OverpassWay(TypedDict, total=False):
    type: str
    id: int
    tags: OverpassTags
    geometry: List[OverpassVertex]


def build_query(lat: float, lon: float, radius_m: int = DEFAULT_RADIUS_M) -> str:
    """Overpass QL query for speed-tagged roads within radius_m of the point."""
    return (
        "[out:json][timeout:10];\n"
        "(\n"
        f'  way["highway"]["maxspeed"](around:{radius_m},{lat},{lon});\n'
        ");\n"
        "out geom;"
    )


def accuracy_for_distance(distance_m: float) -> Accuracy:
    if distance_m <= HIGH_ACCURACY_MAX_M:
        return "high"
    if distance_m <= MEDIUM_ACCURACY_MAX_M:
        return "medium"
    return "low"


def _is_vertex(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("lat"), (int, float))
        and isinstance(value.get("lon"), (int, float))
    )


def parse_elements(body: Any) -> List[OverpassWay]:
    """Validates an Overpass response and returns the usable speed-tagged ways.

    Elements without a ``maxspeed`` tag or without a well-formed geometry are
    dropped; the order of the remaining ones is preserved.

    Raises:
        MalformedResponseError: If the body or its element list has the wrong shape.
    """
    if not isinstance(body, dict):
        raise MalformedResponseError(f"Overpass response is not an object: {type(body).__name__}")
    elements = body.get("elements", [])
    if not isinstance(elements, list):
        raise MalformedResponseError("Overpass response 'elements' is not a list")

    ways: List[OverpassWay] = []
    for element in elements:
        if not isinstance(element, dict):
            continue
        tags = element.get("tags")
        geometry = element.get("geometry")
        if not isinstance(tags, dict) or not tags.get("maxspeed"):
            continue
        if not isinstance(geometry, list) or not all(_is_vertex(v) for v in geometry):
            logger.debug(f"Skipping Overpass way {element.get('id')} with unusable geometry")
            continue
        ways.append(element)
    return ways


def select_closest_way(ways: List[OverpassWay], lat: float, lon: float) -> Optional[Tuple[OverpassWay, float]]:
    """Way whose nearest vertex is closest to the point, with that distance in metres.

    Equidistant ways keep the first one encountered.
    """
    best_match: Optional[OverpassWay] = None
    min_distance = math.inf
    for way in ways:
        distance = distance_to_vertices_m(lat, lon, way["geometry"])
        if distance < min_distance:
            min_distance = distance
            best_match = way
    if best_match is None:
        return None
    return best_match, min_distance


class OverpassSpeedLimitProvider(SpeedLimitProvider):
    """OpenStreetMap Overpass implementation of the SpeedLimitProvider interface."""

    name = "overpass"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str = OVERPASS_URL,
        radius_m: int = DEFAULT_RADIUS_M,
        request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
        clock: Clock = now_ms,
    ):
        self.http_client = http_client
        self.url = url
        self.radius_m = radius_m
        self.request_timeout_s = request_timeout_s
        self._clock = clock
        logger.info(f"OverpassSpeedLimitProvider initialized ({url}, radius={radius_m}m).")

    async def resolve(self, location: LocationFix) -> Optional[SpeedLimitResult]:
        return await self.resolve_point(location.latitude, location.longitude)

    async def resolve_point(self, latitude: float, longitude: float) -> Optional[SpeedLimitResult]:
        """Resolves the speed limit at a point with a single Overpass query.

        Raises:
            HttpError: On a non-2xx answer.
            NetworkTimeoutError / NetworkError: If the request itself fails.
        """
        query = build_query(latitude, longitude, self.radius_m)
        try:
            response = await self.http_client.post(
                self.url, data={"data": query}, timeout=self.request_timeout_s
            )
        except httpx.TransportError as e:
            raise translate_transport_error(e) from e
        check_response(response)

        try:
            ways = parse_elements(json_body(response))
        except MalformedResponseError as e:
            logger.warning(f"Ignoring malformed Overpass response: {e}")
            return None

        match = select_closest_way(ways, latitude, longitude)
        if match is None:
            logger.debug(f"No speed-tagged way within {self.radius_m}m of {latitude},{longitude}")
            return None

        way, distance_m = match
        tags = way["tags"]
        road_name = tags.get("name") or tags.get("ref") or UNKNOWN_ROAD
        logger.debug(f"Closest way '{road_name}' at {distance_m:.1f}m, maxspeed={tags['maxspeed']!r}")

        return SpeedLimitResult(
            speed_limit=parse_speed_limit(str(tags["maxspeed"])),
            road=road_name,
            accuracy=accuracy_for_distance(distance_m),
            timestamp=self._clock(),
        )
