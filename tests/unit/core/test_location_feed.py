from typing import List

import pytest

from gpsinfo.core.services.location_feed import LocationFeed
from gpsinfo.domain.models.location import LocationFix


@pytest.fixture
def feed() -> LocationFeed:
    return LocationFeed()


@pytest.fixture
def fix() -> LocationFix:
    return LocationFix(latitude=43.0, longitude=21.0, timestamp=1000, speed=10.0)


def test_no_location_before_first_fix(feed: LocationFeed):
    assert feed.get_current_location() is None


@pytest.mark.asyncio
async def test_publish_notifies_listeners_in_order(feed: LocationFeed, fix: LocationFix):
    calls: List[str] = []

    def sync_listener(received: LocationFix) -> None:
        calls.append(f"sync:{received.timestamp}")

    async def async_listener(received: LocationFix) -> None:
        calls.append(f"async:{received.timestamp}")

    feed.add_listener(async_listener)
    feed.add_listener(sync_listener)
    await feed.publish(fix)

    assert calls == ["async:1000", "sync:1000"]
    assert feed.get_current_location() is fix


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others(feed: LocationFeed, fix: LocationFix):
    received: List[LocationFix] = []

    def broken(_: LocationFix) -> None:
        raise RuntimeError("listener bug")

    feed.add_listener(broken)
    feed.add_listener(received.append)
    await feed.publish(fix)

    assert received == [fix]


@pytest.mark.asyncio
async def test_removed_listener_is_not_called(feed: LocationFeed, fix: LocationFix):
    received: List[LocationFix] = []
    feed.add_listener(received.append)
    feed.remove_listener(received.append)
    feed.remove_listener(received.append)

    await feed.publish(fix)

    assert received == []


def test_convert_speed_to_kmh():
    assert LocationFeed.convert_speed_to_kmh(20.0) == pytest.approx(72.0)
    assert LocationFeed.convert_speed_to_kmh(None) is None
