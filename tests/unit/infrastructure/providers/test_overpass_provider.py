import math
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from gpsinfo.domain.exceptions import HttpError, NetworkTimeoutError
from gpsinfo.domain.models.location import LocationFix
from gpsinfo.infrastructure.providers.overpass_provider import (
    OverpassSpeedLimitProvider, accuracy_for_distance, build_query, parse_elements, select_closest_way,
)

from conftest import FakeClock, make_client

LAT, LON = 43.0, 21.0
METERS_PER_DEG_LAT = 6371000 * math.pi / 180


def way(
    maxspeed: Optional[str],
    north_m: float,
    name: Optional[str] = None,
    ref: Optional[str] = None,
    way_id: int = 1,
) -> Dict[str, Any]:
    """A way with a single vertex ``north_m`` metres north of the query point."""
    tags: Dict[str, Any] = {"highway": "primary"}
    if maxspeed is not None:
        tags["maxspeed"] = maxspeed
    if name:
        tags["name"] = name
    if ref:
        tags["ref"] = ref
    return {
        "type": "way",
        "id": way_id,
        "tags": tags,
        "geometry": [{"lat": LAT + north_m / METERS_PER_DEG_LAT, "lon": LON}],
    }


class OverpassStub:
    def __init__(self, body: Any = None, status: int = 200, error: Optional[type] = None):
        self.body = {"elements": []} if body is None else body
        self.status = status
        self.error = error
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error:
            raise self.error("scripted failure", request=request)
        if isinstance(self.body, str):
            return httpx.Response(self.status, text=self.body)
        return httpx.Response(self.status, json=self.body)


def make_provider(stub: OverpassStub, clock: FakeClock) -> OverpassSpeedLimitProvider:
    return OverpassSpeedLimitProvider(http_client=make_client(stub), clock=clock)


@pytest.fixture
def fix() -> LocationFix:
    return LocationFix(latitude=LAT, longitude=LON, timestamp=0)


def test_build_query():
    query = build_query(LAT, LON, 200)
    assert query.startswith("[out:json][timeout:10];")
    assert 'way["highway"]["maxspeed"](around:200,43.0,21.0);' in query
    assert query.endswith("out geom;")


@pytest.mark.parametrize("distance, expected", [
    (0.0, "high"), (20.0, "high"), (20.1, "medium"), (35.0, "medium"), (35.1, "low"),
])
def test_accuracy_for_distance(distance, expected):
    assert accuracy_for_distance(distance) == expected


def test_parse_elements_keeps_usable_ways_in_order():
    body = {"elements": [
        way("50", 10, way_id=1),
        way(None, 5, way_id=2),
        {"type": "way", "id": 3, "tags": {"maxspeed": "60"}, "geometry": [{"lat": "x"}]},
        way("70", 30, way_id=4),
    ]}
    assert [w["id"] for w in parse_elements(body)] == [1, 4]


def test_closest_way_tie_keeps_first():
    first, second = way("50", 10, name="First", way_id=1), way("60", 10, name="Second", way_id=2)
    match = select_closest_way([first, second], LAT, LON)
    assert match is not None
    assert match[0] is first


def test_closest_way_of_nothing():
    assert select_closest_way([], LAT, LON) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("distance, accuracy", [(15, "high"), (25, "medium"), (40, "low")])
async def test_accuracy_follows_distance(clock: FakeClock, fix: LocationFix, distance, accuracy):
    stub = OverpassStub({"elements": [way("60", distance, name="Cara Dušana")]})
    result = await make_provider(stub, clock).resolve(fix)
    assert result.accuracy == accuracy


@pytest.mark.asyncio
async def test_picks_closest_way(clock: FakeClock, fix: LocationFix):
    stub = OverpassStub({"elements": [
        way("80", 60, name="Far"),
        way("40", 12, name="Near"),
        way("60", 30, name="Middle"),
    ]})

    result = await make_provider(stub, clock).resolve(fix)

    assert result.speed_limit == 40
    assert result.road == "Near"
    assert result.accuracy == "high"
    assert result.timestamp == clock()
    assert result.source is None


@pytest.mark.asyncio
async def test_mph_limit_is_converted(clock: FakeClock, fix: LocationFix):
    stub = OverpassStub({"elements": [way("50 mph", 5, name="High Street")]})
    result = await make_provider(stub, clock).resolve(fix)
    assert result.speed_limit == 80


@pytest.mark.asyncio
async def test_non_numeric_limit_keeps_road(clock: FakeClock, fix: LocationFix):
    stub = OverpassStub({"elements": [way("signals", 5, name="Kneza Miloša")]})
    result = await make_provider(stub, clock).resolve(fix)
    assert result.speed_limit is None
    assert result.road == "Kneza Miloša"


@pytest.mark.asyncio
@pytest.mark.parametrize("name, ref, expected", [
    (None, "M-22", "M-22"),
    (None, None, "Unknown Road"),
])
async def test_road_name_fallbacks(clock: FakeClock, fix: LocationFix, name, ref, expected):
    stub = OverpassStub({"elements": [way("80", 5, name=name, ref=ref)]})
    result = await make_provider(stub, clock).resolve(fix)
    assert result.road == expected


@pytest.mark.asyncio
async def test_posts_query_as_form_data(clock: FakeClock, fix: LocationFix):
    stub = OverpassStub()
    await make_provider(stub, clock).resolve(fix)

    request = stub.requests[0]
    assert request.method == "POST"
    assert request.url == "https://overpass-api.de/api/interpreter"
    form = parse_qs(request.content.decode())
    assert form["data"] == [build_query(LAT, LON, 200)]


@pytest.mark.asyncio
async def test_no_ways_is_no_data(clock: FakeClock, fix: LocationFix):
    assert await make_provider(OverpassStub(), clock).resolve(fix) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["not json", {"elements": {"id": 1}}, [1, 2]])
async def test_malformed_response_is_no_data(clock: FakeClock, fix: LocationFix, body):
    assert await make_provider(OverpassStub(body), clock).resolve(fix) is None


@pytest.mark.asyncio
async def test_server_error_raises(clock: FakeClock, fix: LocationFix):
    stub = OverpassStub(status=500)
    with pytest.raises(HttpError) as exc_info:
        await make_provider(stub, clock).resolve(fix)
    assert exc_info.value.status_code == 500
    assert len(stub.requests) == 1


@pytest.mark.asyncio
async def test_timeout_raises_without_retry(clock: FakeClock, fix: LocationFix):
    stub = OverpassStub(error=httpx.ReadTimeout)
    with pytest.raises(NetworkTimeoutError):
        await make_provider(stub, clock).resolve(fix)
    assert len(stub.requests) == 1
