"""Main entry point for the gpsinfo application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated, Any, Coroutine, Dict, Optional

import httpx
import typer

logger = logging.getLogger(__name__)

# --- Core Layer ---
from gpsinfo.core.command_handler import CommandHandler, EXIT_FAILURE
from gpsinfo.core.services.location_feed import LocationFeed
from gpsinfo.core.services.speed_limit_service import SpeedLimitResolver
from gpsinfo.core.services.speed_monitor import SpeedMonitor

# --- Infrastructure Layer ---
from gpsinfo.infrastructure.config.settings import (
    get_cache_ttl_ms,
    get_config,
    get_here_api_key,
    get_min_request_interval_ms,
    get_rate_ceilings,
    load_configuration,
)
from gpsinfo.infrastructure.cli.display import ConsoleDisplay
from gpsinfo.infrastructure.cache.caching_service import SpeedLimitCache
from gpsinfo.infrastructure.providers.here_provider import HereSpeedLimitProvider
from gpsinfo.infrastructure.providers.overpass_provider import OverpassSpeedLimitProvider
from gpsinfo.infrastructure.resilience.rate_limiter import RateLimiter
from gpsinfo.infrastructure.resilience.api_retry import ApiRetryService, DEFAULT_BACKOFF_POLICY
from gpsinfo.infrastructure.resilience.usage_counter import UsageCounter
from gpsinfo.infrastructure.monitoring.logger_setup import setup_logging
from gpsinfo.domain.models.common import BackoffPolicy
from gpsinfo.utils.clock import TrackClock

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "GPS-Info-App/1.0",
}


def create_http_client() -> httpx.AsyncClient:
    """Shared HTTP client for both providers."""
    return httpx.AsyncClient(headers=DEFAULT_HEADERS)


# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root. It runs once per CLI invocation so
    the HTTP client it creates can be closed when the command finishes.
    """
    dependencies: Dict[str, Any] = {}
    try:
        # 1. Load Configuration First
        load_configuration()
        log_level_name = str(get_config('logging.level', 'INFO')).upper()
        log_level = getattr(logging, log_level_name, logging.INFO)
        setup_logging(
            log_level=log_level,
            log_format=get_config('logging.format'),
            log_file=get_config('logging.file'),
        )
        logger.info("Configuration and logging initialized.")

        # 2. Instantiate Infrastructure Adapters & Services
        dependencies['ui'] = ConsoleDisplay()
        dependencies['http_client'] = create_http_client()
        # Wall clock, except while 'replay' sets it to the track's timestamps.
        dependencies['clock'] = TrackClock()
        dependencies['rate_limiter'] = RateLimiter(ceilings=get_rate_ceilings())
        dependencies['cache_service'] = SpeedLimitCache(ttl_ms=get_cache_ttl_ms(), clock=dependencies['clock'])

        dependencies['fallback_provider'] = OverpassSpeedLimitProvider(
            http_client=dependencies['http_client'],
            url=str(get_config('overpass.url')),
            radius_m=int(get_config('overpass.radius_m')),
            request_timeout_s=float(get_config('overpass.timeout_s')),
            clock=dependencies['clock'],
        )

        # 3. Primary provider only when a key is configured
        api_key = get_here_api_key()
        logger.debug(f"HERE API key found: {bool(api_key)}")
        if api_key:
            policy = BackoffPolicy(
                max_retries=int(get_config('here.max_retries')),
                rate_limit_base_ms=DEFAULT_BACKOFF_POLICY['rate_limit_base_ms'],
                rate_limit_cap_ms=DEFAULT_BACKOFF_POLICY['rate_limit_cap_ms'],
                retry_step_ms=DEFAULT_BACKOFF_POLICY['retry_step_ms'],
            )
            dependencies['api_retry_service'] = ApiRetryService(
                rate_limiter=dependencies['rate_limiter'],
                provider_name="here",
                policy=policy,
            )
            dependencies['primary_provider'] = HereSpeedLimitProvider(
                api_key=api_key,
                http_client=dependencies['http_client'],
                retry_service=dependencies['api_retry_service'],
                usage_counter=UsageCounter(monthly_quota=int(get_config('here.monthly_quota'))),
                request_timeout_s=float(get_config('here.request_timeout_s')),
                clock=dependencies['clock'],
            )
        else:
            logger.warning("HERE API key not found, primary provider disabled.")
            dependencies['primary_provider'] = None

        # 4. Core Services
        dependencies['resolver'] = SpeedLimitResolver(
            cache=dependencies['cache_service'],
            fallback=dependencies['fallback_provider'],
            primary=dependencies['primary_provider'],
            cache_ttl_ms=get_cache_ttl_ms(),
            min_request_interval_ms=get_min_request_interval_ms(),
            clock=dependencies['clock'],
        )
        dependencies['location_feed'] = LocationFeed()
        dependencies['speed_monitor'] = SpeedMonitor(resolver=dependencies['resolver'])

        # 5. Command Handler
        dependencies['command_handler'] = CommandHandler(
            resolver=dependencies['resolver'],
            feed=dependencies['location_feed'],
            monitor=dependencies['speed_monitor'],
            ui=dependencies['ui'],
            track_clock=dependencies['clock'],
        )
        logger.info("All dependencies initialized successfully.")
        return dependencies

    except (ValueError, TypeError, OSError) as e:
        logger.error(f"Fatal Error during application initialization: {e}", exc_info=True)
        if dependencies.get('ui'):
            dependencies['ui'].display_error(f"Application Initialization Failed: {e}")
        else:
            print(f"FATAL ERROR during initialization: {e}", file=sys.stderr)
        raise typer.Exit(code=EXIT_FAILURE)


# --- Typer App Definition ---
app = typer.Typer(
    name="gpsinfo",
    help="gpsinfo: speed limit lookup for GPS positions (HERE with OpenStreetMap fallback).",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(dependencies: Dict[str, Any], coro: Coroutine[Any, Any, int]) -> int:
    """Runs a command coroutine, then closes the shared HTTP client."""

    async def _run() -> int:
        try:
            return await coro
        finally:
            await dependencies['http_client'].aclose()

    return asyncio.run(_run())


# --- CLI Commands ---

ShowUsageOption = Annotated[
    bool,
    typer.Option("--show-usage", "-u", help="Print HERE quota usage after the command."),
]


@app.command()
def lookup(
    latitude: Annotated[float, typer.Argument(help="Latitude in degrees (use '--' before negative values).")],
    longitude: Annotated[float, typer.Argument(help="Longitude in degrees.")],
    speed: Annotated[Optional[float], typer.Option("--speed", "-s", help="Current speed in km/h.")] = None,
    show_usage: ShowUsageOption = False,
):
    """Look up the speed limit at a single position."""
    dependencies = create_dependencies()
    handler: CommandHandler = dependencies['command_handler']
    code = run_async(dependencies, handler.handle_lookup(latitude, longitude, speed, show_usage))
    if code:
        raise typer.Exit(code=code)


@app.command()
def replay(
    track: Annotated[Path, typer.Argument(help="JSON file with an array of GPS fixes.")],
    show_usage: ShowUsageOption = False,
):
    """Replay a recorded track and report limits and speeding per fix."""
    dependencies = create_dependencies()
    handler: CommandHandler = dependencies['command_handler']
    code = run_async(dependencies, handler.handle_replay(track, show_usage))
    if code:
        raise typer.Exit(code=code)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
