#!/usr/bin/env python3
"""
Examples of programmatic usage of gpsinfo components.

This file demonstrates how to wire the resolver and the speed monitor by hand,
which is useful when embedding speed limit lookups in another application
(a dashboard, a fleet tracker) instead of going through the CLI.

Usage:
    python examples.py

Set HERE_API_KEY (or GPSINFO_HERE_API_KEY) to enable the HERE provider;
without it every lookup goes to OpenStreetMap.
"""

import asyncio

import httpx

# Import domain models
from gpsinfo.domain.models.location import LocationFix

# Import infrastructure implementations
from gpsinfo.infrastructure.cli.display import ConsoleDisplay
from gpsinfo.infrastructure.config.settings import load_configuration, get_here_api_key, get_rate_ceilings
from gpsinfo.infrastructure.cache.caching_service import SpeedLimitCache
from gpsinfo.infrastructure.providers.here_provider import HereSpeedLimitProvider
from gpsinfo.infrastructure.providers.overpass_provider import OverpassSpeedLimitProvider
from gpsinfo.infrastructure.resilience.rate_limiter import RateLimiter
from gpsinfo.infrastructure.resilience.api_retry import ApiRetryService

# Import core services
from gpsinfo.core.services.location_feed import LocationFeed
from gpsinfo.core.services.speed_limit_service import SpeedLimitResolver
from gpsinfo.core.services.speed_monitor import SpeedMonitor, SpeedStatus
from gpsinfo.utils.clock import now_ms

# A short drive along Bulevar kralja Aleksandra, Belgrade (speeds in m/s)
SAMPLE_DRIVE = [
    (44.8057, 20.4760, 11.0),
    (44.8049, 20.4787, 14.5),
    (44.8041, 20.4815, 16.0),
]


def setup_dependencies(http_client: httpx.AsyncClient):
    """Set up and wire the dependencies for example usage."""
    load_configuration()

    ui = ConsoleDisplay()
    cache = SpeedLimitCache()
    fallback = OverpassSpeedLimitProvider(http_client=http_client)

    primary = None
    api_key = get_here_api_key()
    if api_key:
        retry_service = ApiRetryService(rate_limiter=RateLimiter(ceilings=get_rate_ceilings()))
        primary = HereSpeedLimitProvider(api_key=api_key, http_client=http_client, retry_service=retry_service)
    else:
        print("HERE_API_KEY not set: using OpenStreetMap only.")

    # No throttling between lookups, so every sample point is resolved.
    resolver = SpeedLimitResolver(cache=cache, fallback=fallback, primary=primary, min_request_interval_ms=0)

    return {
        "ui": ui,
        "cache": cache,
        "resolver": resolver,
        "feed": LocationFeed(),
    }


async def example_single_lookup(resolver, ui, latitude=44.8125, longitude=20.4612):
    """Example of resolving one position.

    Args:
        resolver: An instance of SpeedLimitResolver.
        ui: An instance of ConsoleDisplay.
        latitude: Latitude of the position (defaults to central Belgrade).
        longitude: Longitude of the position.
    """
    print("\n\n===== Example: Single Lookup =====")
    fix = LocationFix(latitude=latitude, longitude=longitude, timestamp=now_ms())
    result = await resolver.resolve(fix)
    ui.display_speed_limit(result)


async def example_monitor_drive(resolver, feed, ui):
    """Example of pushing fixes through a LocationFeed into a SpeedMonitor.

    Args:
        resolver: An instance of SpeedLimitResolver.
        feed: An instance of LocationFeed.
        ui: An instance of ConsoleDisplay.
    """
    print("\n\n===== Example: Monitor a Drive =====")
    statuses = []

    def on_status(status: SpeedStatus) -> None:
        statuses.append(status)
        if status.is_speeding:
            ui.display_warning(f"Over the limit at {status.location.latitude:.4f},{status.location.longitude:.4f}")

    monitor = SpeedMonitor(resolver, on_status=on_status)
    monitor.attach(feed)
    for latitude, longitude, speed in SAMPLE_DRIVE:
        await feed.publish(LocationFix(latitude=latitude, longitude=longitude, timestamp=now_ms(), speed=speed))
    monitor.detach(feed)

    ui.display_statuses(statuses)


async def main():
    """Run the examples."""
    async with httpx.AsyncClient(headers={"User-Agent": "GPS-Info-App/1.0"}) as http_client:
        deps = setup_dependencies(http_client)

        await example_single_lookup(deps["resolver"], deps["ui"])
        await example_monitor_drive(deps["resolver"], deps["feed"], deps["ui"])

        deps["ui"].display_usage(deps["resolver"].get_usage_stats())
        print(f"\nCached buckets: {len(deps['cache'])}")


if __name__ == "__main__":
    asyncio.run(main())
