"""Domain exceptions raised by speed limit providers and their resilience layer.

Providers raise these; the resolver catches them and moves down its
fallback ladder, so none of them reaches a UI consumer.
"""

from typing import Optional


class SpeedLimitError(Exception):
    """Base class for all errors raised while resolving speed limits."""


class QuotaExceededError(SpeedLimitError):
    """The provider's monthly request quota is exhausted. No request was sent."""

    def __init__(self, provider: str, quota: int):
        self.provider = provider
        self.quota = quota
        super().__init__(f"{provider} monthly quota of {quota} requests exceeded")


class ProviderRequestError(SpeedLimitError):
    """An HTTP request to a provider failed definitively."""

    def __init__(self, message: str, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class RateLimitedError(ProviderRequestError):
    """The provider kept answering 429 until retries were exhausted."""


class NetworkError(ProviderRequestError):
    """Transport-level failure (connection refused, reset, DNS, ...)."""


class NetworkTimeoutError(NetworkError):
    """The request did not complete within the configured timeout."""


class HttpError(ProviderRequestError):
    """Non-2xx, non-429 response. Never retried."""

    def __init__(self, status_code: int, reason: Optional[str] = None, attempts: int = 1):
        self.status_code = status_code
        self.reason = reason
        message = f"HTTP {status_code}" + (f": {reason}" if reason else "")
        super().__init__(message, attempts=attempts)


class MalformedResponseError(SpeedLimitError):
    """The provider answered with a body that does not match its schema."""


class RateLimiterError(SpeedLimitError):
    """The rate limiter could not grant a slot within its iteration bound."""
