"""Implementation of a per-API-class rate limiter.

Controls the frequency of outgoing requests to each class of external API
(geocoding, routing, fleet) so the configured requests-per-second ceilings are
never exceeded. Uses an independent sliding window per class.
"""

import asyncio
import logging
import math
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Mapping, Optional

from gpsinfo.domain.exceptions import RateLimiterError
from gpsinfo.domain.models.common import ApiClass, FLEET, GEOCODING, ROUTING

logger = logging.getLogger(__name__)

# Provider limits are 5 / 10 / 1 req/s; stay below them.
DEFAULT_CEILINGS: Dict[ApiClass, float] = {
    GEOCODING: 4.0,
    ROUTING: 8.0,
    FLEET: 0.8,
}
BASE_WINDOW_SECONDS = 1.0
DEFAULT_MAX_WAIT_ITERATIONS = 50


class RateWindow:
    """Sliding window of request timestamps for one API class.

    A ceiling below 1 req/s stretches the window to ``1 / ceiling`` seconds
    with room for a single request, so 0.8 req/s means one request per 1.25 s.
    """

    def __init__(self, ceiling: float):
        if ceiling <= 0:
            raise ValueError(f"Rate ceiling must be positive, got {ceiling}")
        self.ceiling = ceiling
        self.window_seconds = max(BASE_WINDOW_SECONDS, 1.0 / ceiling)
        self.capacity = max(1, math.floor(ceiling * self.window_seconds + 1e-9))
        self.timestamps: Deque[float] = deque()
        self.lock = asyncio.Lock()

    def cleanup(self, now: float) -> None:
        """Removes timestamps that have left the window."""
        while self.timestamps and now - self.timestamps[0] >= self.window_seconds:
            self.timestamps.popleft()

    def wait_time(self, now: float) -> float:
        if len(self.timestamps) < self.capacity:
            return 0.0
        return max(0.0, self.timestamps[0] + self.window_seconds - now)


class RateLimiter:
    """Sliding window rate limiter with one independent window per API class."""

    def __init__(
        self,
        ceilings: Optional[Mapping[str, float]] = None,
        max_wait_iterations: int = DEFAULT_MAX_WAIT_ITERATIONS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initializes the rate limiter.

        Args:
            ceilings: Requests per second allowed for each API class.
            max_wait_iterations: Upper bound on wait-and-recheck rounds per acquire.
            clock: Monotonic time source in seconds.
            sleep: Coroutine used to suspend the caller.

        Raises:
            ValueError: If any ceiling is zero or negative.
        """
        effective = dict(DEFAULT_CEILINGS if ceilings is None else ceilings)
        self.windows: Dict[str, RateWindow] = {
            api_class: RateWindow(ceiling) for api_class, ceiling in effective.items()
        }
        self.max_wait_iterations = max_wait_iterations
        self._clock = clock
        self._sleep = sleep
        logger.info(
            "RateLimiter initialized: "
            + ", ".join(f"{name}={w.capacity}/{w.window_seconds:.2f}s" for name, w in self.windows.items())
        )

    def _window(self, api_class: str) -> RateWindow:
        try:
            return self.windows[api_class]
        except KeyError:
            raise KeyError(f"No rate limit configured for API class '{api_class}'") from None

    async def acquire(self, api_class: str) -> None:
        """Waits until a request of this class is permitted, then records it.

        Raises:
            RateLimiterError: If no slot opened up within max_wait_iterations rounds.
        """
        window = self._window(api_class)
        for _ in range(self.max_wait_iterations):
            async with window.lock:
                now = self._clock()
                window.cleanup(now)
                wait_time = window.wait_time(now)
                if wait_time <= 0:
                    window.timestamps.append(now)
                    logger.debug(f"Rate limit permission granted for {api_class}.")
                    return

            logger.debug(f"Rate limiting: waiting {wait_time * 1000:.0f}ms for {api_class} API")
            await self._sleep(wait_time)
            # Loop again to re-check condition after waiting

        raise RateLimiterError(
            f"No {api_class} request slot after {self.max_wait_iterations} waits"
        )

    async def get_wait_time(self, api_class: str) -> float:
        """Estimates the time needed before the next request can be made."""
        window = self._window(api_class)
        async with window.lock:
            now = self._clock()
            window.cleanup(now)
            return window.wait_time(now)
