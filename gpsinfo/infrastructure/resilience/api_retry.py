"""Service for executing provider HTTP calls with automatic retries.

Every attempt first waits for a rate-limit slot of its API class. A 429
answer is retried after an exponential backoff; timeouts and transport
errors are retried after a linearly growing backoff; any other non-2xx
status fails immediately. Failures surface as domain exceptions.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from gpsinfo.domain.events.api_events import (
    ApiCallDeferred, ApiCallFailed, ApiCallInitiated, ApiCallSucceeded,
    EventSink, RetryScheduled, dispatch_event,
)
from gpsinfo.domain.exceptions import (
    HttpError, MalformedResponseError, NetworkError, NetworkTimeoutError,
    ProviderRequestError, RateLimitedError,
)
from gpsinfo.domain.models.common import BackoffPolicy
from gpsinfo.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_POLICY = BackoffPolicy(
    max_retries=2,
    rate_limit_base_ms=1000,
    rate_limit_cap_ms=10000,
    retry_step_ms=1000,
)

def rate_limit_backoff_ms(policy: BackoffPolicy, retry_count: int) -> int:
    """Exponential backoff after a 429: base * 2^n, capped."""
    return min(policy["rate_limit_base_ms"] * 2 ** retry_count, policy["rate_limit_cap_ms"])

def transient_backoff_ms(policy: BackoffPolicy, retry_count: int) -> int:
    """Linear backoff after a timeout or transport error: step * (n + 1)."""
    return policy["retry_step_ms"] * (retry_count + 1)

def check_response(response: httpx.Response, attempts: int = 1) -> httpx.Response:
    """Raises HttpError for any non-2xx response, returns it unchanged otherwise."""
    if not response.is_success:
        raise HttpError(response.status_code, response.reason_phrase or None, attempts=attempts)
    return response

def json_body(response: httpx.Response) -> Any:
    """Decodes a JSON body, raising MalformedResponseError if it is not JSON."""
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(f"Response body is not valid JSON: {e}") from e

def translate_transport_error(error: httpx.TransportError, attempts: int = 1) -> NetworkError:
    """Maps an httpx transport failure onto the domain error taxonomy."""
    if isinstance(error, httpx.TimeoutException):
        return NetworkTimeoutError(f"Request timed out: {error}", attempts=attempts)
    return NetworkError(f"Network error: {type(error).__name__}: {error}", attempts=attempts)


class ApiRetryService:
    """Handles provider API call execution with rate limiting and retries."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        provider_name: str = "here",
        policy: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        event_sink: EventSink = dispatch_event,
    ):
        """Initializes the ApiRetryService.

        Args:
            rate_limiter: The rate limiter instance to use.
            provider_name: Name of the provider (for logging/events).
            policy: Retry and backoff configuration.
            sleep: Coroutine used for backoff waits.
            event_sink: Callable receiving domain events.
        """
        self.rate_limiter = rate_limiter
        self.provider_name = provider_name
        self.policy = policy or DEFAULT_BACKOFF_POLICY
        self._sleep = sleep
        self._emit = event_sink

        logger.info(
            f"ApiRetryService initialized for '{provider_name}': max_retries={self.policy['max_retries']}"
        )

    @property
    def max_retries(self) -> int:
        return self.policy["max_retries"]

    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[httpx.Response]],
        *args: Any,
        api_class: str,
        endpoint_name: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Executes an async HTTP call with rate limiting and retries.

        Args:
            func: The async function performing the request (e.g. client.get).
            *args: Positional arguments for the function.
            api_class: Rate limit class the request is counted against.
            endpoint_name: Name of the endpoint (for logging/events).
            **kwargs: Keyword arguments for the function.

        Returns:
            The successful (2xx) response.

        Raises:
            RateLimitedError: If the provider still answers 429 after all retries.
            NetworkTimeoutError / NetworkError: If retries are exhausted.
            HttpError: On any other non-2xx status, without retrying.
        """
        endpoint = endpoint_name or getattr(func, "__name__", "request")
        last_error: Optional[ProviderRequestError] = None

        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1

            # 1. Wait for rate limit permission
            wait_duration = await self.rate_limiter.get_wait_time(api_class)
            if wait_duration > 0:
                self._emit(ApiCallDeferred(
                    provider=self.provider_name, endpoint=endpoint,
                    api_class=api_class, wait_time_seconds=wait_duration,
                ))
            await self.rate_limiter.acquire(api_class)

            # 2. Execute the function
            self._emit(ApiCallInitiated(provider=self.provider_name, endpoint=endpoint, api_class=api_class))
            start_time = time.perf_counter()
            try:
                response = await func(*args, **kwargs)
            except httpx.TransportError as e:
                last_error = translate_transport_error(e, attempts=attempts)
                reason = "timeout" if isinstance(last_error, NetworkTimeoutError) else "network"
                if attempt < self.max_retries:
                    delay_ms = transient_backoff_ms(self.policy, attempt)
                    logger.warning(
                        f"{type(last_error).__name__} calling {self.provider_name}.{endpoint}, "
                        f"retrying ({attempts}/{self.max_retries}) in {delay_ms}ms"
                    )
                    await self._schedule_retry(endpoint, attempts, delay_ms, reason)
                    continue
                break

            if response.status_code == 429:
                last_error = RateLimitedError(
                    f"{self.provider_name} rate limit exceeded", attempts=attempts
                )
                if attempt < self.max_retries:
                    delay_ms = rate_limit_backoff_ms(self.policy, attempt)
                    logger.warning(f"Rate limit hit on {self.provider_name}.{endpoint}, backing off for {delay_ms}ms")
                    await self._schedule_retry(endpoint, attempts, delay_ms, "rate_limited")
                    continue
                break

            try:
                check_response(response, attempts=attempts)
            except HttpError as e:
                logger.error(f"Non-retryable HTTP error from {self.provider_name}.{endpoint}: {e}")
                self._emit_failure(endpoint, e)
                raise

            latency_ms = (time.perf_counter() - start_time) * 1000
            self._emit(ApiCallSucceeded(
                provider=self.provider_name, endpoint=endpoint,
                latency_ms=latency_ms, status_code=response.status_code,
            ))
            return response

        # --- Loop finished without returning: retries exhausted ---
        final_error = last_error or ProviderRequestError("Unknown error after retries")
        logger.error(
            f"Max retries ({self.max_retries}) reached for {self.provider_name}.{endpoint}. Last error: {final_error}"
        )
        self._emit_failure(endpoint, final_error)
        raise final_error

    async def _schedule_retry(self, endpoint: str, attempt_number: int, delay_ms: int, reason: str) -> None:
        self._emit(RetryScheduled(
            provider=self.provider_name, endpoint=endpoint,
            attempt_number=attempt_number, delay_seconds=delay_ms / 1000, reason=reason,
        ))
        await self._sleep(delay_ms / 1000)

    def _emit_failure(self, endpoint: str, error: Exception) -> None:
        self._emit(ApiCallFailed(
            provider=self.provider_name, endpoint=endpoint,
            error_type=type(error).__name__, error_message=str(error),
        ))
