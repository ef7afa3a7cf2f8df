"""Primary speed limit provider backed by the HERE routing and geocoding APIs.

The free-tier routing API rarely exposes an explicit limit, so the provider
falls back to reverse-geocoding the point and inferring a default limit from
the road name using Serbian road-classification markers.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, TypedDict

import httpx

from gpsinfo.domain.exceptions import (
    MalformedResponseError, ProviderRequestError, QuotaExceededError,
)
from gpsinfo.domain.interfaces.speed_limit_provider import SpeedLimitProvider
from gpsinfo.domain.models.common import GEOCODING, ROUTING
from gpsinfo.domain.models.location import LocationFix
from gpsinfo.domain.models.speed_limit import SpeedLimitResult
from gpsinfo.infrastructure.resilience.api_retry import ApiRetryService, json_body
from gpsinfo.infrastructure.resilience.usage_counter import UsageCounter
from gpsinfo.utils.clock import Clock, now_ms
from gpsinfo.utils.units import mps_to_kmh

logger = logging.getLogger(__name__)

ROUTING_URL = "https://router.hereapi.com/v8/routes"
REVGEOCODE_URL = "https://revgeocode.search.hereapi.com/v1/revgeocode"
DEFAULT_REQUEST_TIMEOUT_S = 10.0
ROUTE_OFFSET_DEG = 0.001  # ~100 m box around the point

# Road-name markers, checked in order. Latin and Cyrillic spellings.
MOTORWAY_MARKERS = ("a1", "a2", "a3", "автопут", "autoput")
TRUNK_MARKERS = ("е70", "е75", "м", "магистрал", "magistral")
URBAN_MARKERS = ("булевар", "улица", "трг", "bulevar", "ulica", "trg")
ROAD_CLASS_LIMITS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (MOTORWAY_MARKERS, 130),
    (TRUNK_MARKERS, 100),
    (URBAN_MARKERS, 50),
)
RURAL_DEFAULT_KMH = 80


# --- Response schemas ---

class HereAddress(TypedDict, total=False):
    street: str
    city: str

class HereGeocodeItem(TypedDict, total=False):
    title: str
    address: HereAddress

class HereSpan(TypedDict, total=False):
    offset: int
    speedLimit: float  # metres per second

class HereSection(TypedDict, total=False):
    id: str
    spans: List[HereSpan]

class HereRoute(TypedDict, total=False):
    id: str
    sections: List[HereSection]


def classify_road_name(road_name: str) -> int:
    """Default speed limit in km/h for a road, judged by its name."""
    name = road_name.lower()
    for markers, limit in ROAD_CLASS_LIMITS:
        if any(marker in name for marker in markers):
            return limit
    return RURAL_DEFAULT_KMH


def parse_routes(body: Any) -> List[HereRoute]:
    """Validates a routing response and returns its routes.

    Raises:
        MalformedResponseError: If the body does not have the expected shape.
    """
    if not isinstance(body, dict):
        raise MalformedResponseError(f"Routing response is not an object: {type(body).__name__}")
    routes = body.get("routes", [])
    if not isinstance(routes, list) or not all(isinstance(r, dict) for r in routes):
        raise MalformedResponseError("Routing response 'routes' is not a list of objects")
    return routes


def parse_geocode_items(body: Any) -> List[HereGeocodeItem]:
    """Validates a reverse-geocoding response and returns its items.

    Raises:
        MalformedResponseError: If the body does not have the expected shape.
    """
    if not isinstance(body, dict):
        raise MalformedResponseError(f"Geocoding response is not an object: {type(body).__name__}")
    items = body.get("items", [])
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise MalformedResponseError("Geocoding response 'items' is not a list of objects")
    return items


def road_name_from_item(item: HereGeocodeItem) -> Optional[str]:
    address = item.get("address")
    street = address.get("street") if isinstance(address, dict) else None
    name = street or item.get("title")
    return name if isinstance(name, str) and name.strip() else None


def explicit_speed_limit_kmh(route: HereRoute) -> Optional[int]:
    """First positive span speed limit on the route, converted to km/h."""
    sections = route.get("sections")
    if not isinstance(sections, list):
        return None
    for section in sections:
        spans = section.get("spans") if isinstance(section, dict) else None
        if not isinstance(spans, list):
            continue
        for span in spans:
            value = span.get("speedLimit") if isinstance(span, dict) else None
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                return round(mps_to_kmh(value))
    return None


class HereSpeedLimitProvider(SpeedLimitProvider):
    """HERE implementation of the SpeedLimitProvider interface."""

    name = "here"

    def __init__(
        self,
        api_key: Optional[str],
        http_client: httpx.AsyncClient,
        retry_service: ApiRetryService,
        usage_counter: Optional[UsageCounter] = None,
        request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
        clock: Clock = now_ms,
    ):
        """Initializes the HERE provider.

        Args:
            api_key: HERE API key.
            http_client: Shared async HTTP client.
            retry_service: Executes requests with rate limiting and retries.
            usage_counter: Monthly quota counter (a fresh one if None).
            request_timeout_s: Per-request timeout in seconds.
            clock: Epoch-milliseconds time source for result timestamps.

        Raises:
            ValueError: If no API key is given.
        """
        if not api_key:
            raise ValueError("HERE API key not provided.")
        self.api_key = api_key
        self.http_client = http_client
        self.retry_service = retry_service
        self.usage_counter = usage_counter or UsageCounter()
        self.request_timeout_s = request_timeout_s
        self._clock = clock
        logger.info(f"HereSpeedLimitProvider initialized (timeout={request_timeout_s}s).")

    async def resolve(self, location: LocationFix) -> Optional[SpeedLimitResult]:
        """Resolves the speed limit at a location via HERE.

        Raises:
            QuotaExceededError: If the monthly quota is used up. No request is sent.
            ProviderRequestError: If the routing request fails definitively.
        """
        if not self.usage_counter.has_capacity():
            raise QuotaExceededError(self.name, self.usage_counter.monthly_quota)

        result = await self._resolve_from_routing(location.latitude, location.longitude)
        if result is not None:
            self.usage_counter.increment()
        return result

    async def _resolve_from_routing(self, lat: float, lon: float) -> Optional[SpeedLimitResult]:
        """Routes across a tiny box around the point to find the road there."""
        params: Dict[str, Any] = {
            "transportMode": "car",
            "origin": f"{lat - ROUTE_OFFSET_DEG},{lon - ROUTE_OFFSET_DEG}",
            "destination": f"{lat + ROUTE_OFFSET_DEG},{lon + ROUTE_OFFSET_DEG}",
            "return": "summary,polyline",
            "spans": "speedLimit",
            "apiKey": self.api_key,
        }
        response = await self.retry_service.execute_with_retry(
            self.http_client.get, ROUTING_URL,
            params=params, timeout=self.request_timeout_s,
            api_class=ROUTING, endpoint_name="routes",
        )
        try:
            routes = parse_routes(json_body(response))
        except MalformedResponseError as e:
            logger.warning(f"Ignoring malformed HERE routing response: {e}")
            return None

        if not routes:
            logger.debug(f"HERE returned no route near {lat},{lon}")
            return None

        explicit_limit = explicit_speed_limit_kmh(routes[0])
        road_name = await self.reverse_geocode(lat, lon)

        if explicit_limit is not None:
            return SpeedLimitResult(
                speed_limit=explicit_limit,
                road=road_name,
                accuracy="high",
                timestamp=self._clock(),
            )

        if not road_name:
            return None

        # Inferred from the road class, not an authoritative limit.
        return SpeedLimitResult(
            speed_limit=classify_road_name(road_name),
            road=road_name,
            accuracy="medium",
            timestamp=self._clock(),
        )

    async def reverse_geocode(self, lat: float, lon: float) -> Optional[str]:
        """Returns the street (or place title) at a point, None if unavailable.

        Failures are logged and reported as None.
        """
        try:
            response = await self.retry_service.execute_with_retry(
                self.http_client.get, REVGEOCODE_URL,
                params={"at": f"{lat},{lon}", "apiKey": self.api_key},
                timeout=self.request_timeout_s,
                api_class=GEOCODING, endpoint_name="revgeocode",
            )
            items = parse_geocode_items(json_body(response))
        except (ProviderRequestError, MalformedResponseError) as e:
            logger.error(f"HERE reverse geocode error: {e}")
            return None

        if not items:
            return None
        return road_name_from_item(items[0])

    def get_usage_stats(self):
        return self.usage_counter.stats()
