from typing import Any, Dict, List, Optional

import httpx
import pytest

from gpsinfo.domain.exceptions import HttpError, QuotaExceededError
from gpsinfo.domain.models.location import LocationFix
from gpsinfo.infrastructure.providers.here_provider import (
    HereSpeedLimitProvider, classify_road_name, explicit_speed_limit_kmh, road_name_from_item,
)
from gpsinfo.infrastructure.resilience.api_retry import ApiRetryService
from gpsinfo.infrastructure.resilience.rate_limiter import RateLimiter
from gpsinfo.infrastructure.resilience.usage_counter import UsageCounter

from conftest import FakeClock, make_client

ROUTING_HOST = "router.hereapi.com"
GEOCODE_HOST = "revgeocode.search.hereapi.com"
ROUTE = {"id": "r1", "sections": [{"id": "s1", "type": "vehicle"}]}


class HereStub:
    """Answers routing and reverse geocoding requests with canned bodies."""

    def __init__(
        self,
        routing: Any = None,
        street: Optional[str] = "Bulevar Oslobođenja",
        routing_status: int = 200,
        geocode_status: int = 200,
    ):
        self.routing = {"routes": [ROUTE]} if routing is None else routing
        self.street = street
        self.routing_status = routing_status
        self.geocode_status = geocode_status
        self.requests: List[httpx.Request] = []

    def hosts(self) -> List[str]:
        return [r.url.host for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == ROUTING_HOST:
            if isinstance(self.routing, str):
                return httpx.Response(self.routing_status, text=self.routing)
            return httpx.Response(self.routing_status, json=self.routing)
        items: List[Dict[str, Any]] = []
        if self.street:
            items = [{"title": f"{self.street}, Beograd", "address": {"street": self.street, "city": "Beograd"}}]
        return httpx.Response(self.geocode_status, json={"items": items})


def make_provider(stub: HereStub, clock: FakeClock, usage_counter: Optional[UsageCounter] = None):
    limiter = RateLimiter(clock=clock.seconds, sleep=clock.sleep)
    retry_service = ApiRetryService(limiter, sleep=clock.sleep, event_sink=lambda event: None)
    return HereSpeedLimitProvider(
        api_key="test-key",
        http_client=make_client(stub),
        retry_service=retry_service,
        usage_counter=usage_counter or UsageCounter(clock=clock),
        clock=clock,
    )


@pytest.fixture
def fix() -> LocationFix:
    return LocationFix(latitude=44.8, longitude=20.46, timestamp=0)


@pytest.mark.parametrize("road_name, expected", [
    ("Autoput Beograd-Niš", 130),
    ("A1", 130),
    ("Аутопут", 80),  # Cyrillic spelling differs from the 'автопут' marker
    ("Магистрални пут М-22", 100),
    ("Ibarska magistrala", 100),
    ("Ulica Kralja Petra", 50),
    ("Булевар краља Александра", 50),
    ("Trg Republike", 50),
    ("Vojvode Stepe", 80),
])
def test_classify_road_name(road_name, expected):
    assert classify_road_name(road_name) == expected


def test_road_name_prefers_street_over_title():
    assert road_name_from_item({"title": "Somewhere", "address": {"street": "Ulica X"}}) == "Ulica X"
    assert road_name_from_item({"title": "Trg Slavija", "address": {}}) == "Trg Slavija"
    assert road_name_from_item({"address": {"street": "  "}}) is None


def test_explicit_speed_limit_from_spans():
    route = {"sections": [{"spans": [{"offset": 0}, {"offset": 3, "speedLimit": 13.8889}]}]}
    assert explicit_speed_limit_kmh(route) == 50
    assert explicit_speed_limit_kmh(ROUTE) is None


def test_missing_api_key_rejected():
    with pytest.raises(ValueError):
        HereSpeedLimitProvider(api_key="", http_client=make_client(HereStub()), retry_service=None)


@pytest.mark.asyncio
async def test_resolves_limit_from_road_name(clock: FakeClock, fix: LocationFix):
    stub = HereStub(street="Autoput E75")
    provider = make_provider(stub, clock)

    result = await provider.resolve(fix)

    assert result is not None
    assert result.speed_limit == 130
    assert result.road == "Autoput E75"
    assert result.accuracy == "medium"
    assert result.unit == "km/h"
    assert result.timestamp == clock()
    assert stub.hosts() == [ROUTING_HOST, GEOCODE_HOST]


@pytest.mark.asyncio
async def test_routing_request_parameters(clock: FakeClock, fix: LocationFix):
    stub = HereStub()
    await make_provider(stub, clock).resolve(fix)

    params = stub.requests[0].url.params
    assert params["transportMode"] == "car"
    assert params["spans"] == "speedLimit"
    assert params["apiKey"] == "test-key"
    assert stub.requests[1].url.params["at"] == "44.8,20.46"


@pytest.mark.asyncio
async def test_explicit_span_limit_is_high_accuracy(clock: FakeClock, fix: LocationFix):
    route = {"sections": [{"spans": [{"offset": 0, "speedLimit": 27.7778}]}]}
    stub = HereStub(routing={"routes": [route]}, street="Ulica Kralja Petra")

    result = await make_provider(stub, clock).resolve(fix)

    assert result.speed_limit == 100
    assert result.accuracy == "high"
    assert result.road == "Ulica Kralja Petra"


@pytest.mark.asyncio
async def test_successful_lookup_counts_against_quota(clock: FakeClock, fix: LocationFix):
    counter = UsageCounter(monthly_quota=25000, clock=clock)
    provider = make_provider(HereStub(), clock, usage_counter=counter)

    await provider.resolve(fix)

    stats = provider.get_usage_stats()
    assert stats["request_count"] == 1
    assert stats["remaining_requests"] == 24999


@pytest.mark.asyncio
async def test_exhausted_quota_sends_no_request(clock: FakeClock, fix: LocationFix):
    counter = UsageCounter(monthly_quota=1, clock=clock)
    counter.increment()
    stub = HereStub()
    provider = make_provider(stub, clock, usage_counter=counter)

    with pytest.raises(QuotaExceededError):
        await provider.resolve(fix)
    assert stub.requests == []


@pytest.mark.asyncio
async def test_no_routes_is_no_data(clock: FakeClock, fix: LocationFix):
    stub = HereStub(routing={"routes": []})
    provider = make_provider(stub, clock)

    assert await provider.resolve(fix) is None
    assert stub.hosts() == [ROUTING_HOST]
    assert provider.get_usage_stats()["request_count"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["<html>gateway</html>", {"routes": "none"}, ["routes"]])
async def test_malformed_routing_response_is_no_data(clock: FakeClock, fix: LocationFix, body):
    provider = make_provider(HereStub(routing=body), clock)
    assert await provider.resolve(fix) is None


@pytest.mark.asyncio
async def test_no_road_name_is_no_data(clock: FakeClock, fix: LocationFix):
    provider = make_provider(HereStub(street=None), clock)
    assert await provider.resolve(fix) is None


@pytest.mark.asyncio
async def test_geocoding_failure_is_treated_as_no_road(clock: FakeClock, fix: LocationFix):
    provider = make_provider(HereStub(geocode_status=500), clock)
    assert await provider.resolve(fix) is None


@pytest.mark.asyncio
async def test_routing_http_error_propagates(clock: FakeClock, fix: LocationFix):
    provider = make_provider(HereStub(routing_status=403), clock)
    with pytest.raises(HttpError) as exc_info:
        await provider.resolve(fix)
    assert exc_info.value.status_code == 403
