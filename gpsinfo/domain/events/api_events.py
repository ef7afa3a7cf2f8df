"""Domain Events related to provider API calls and resilience.

Examples include events for when calls are deferred, retried, fail, succeed,
or when the resolver falls back from one provider to the next.
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

# --- Specific API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an API call is about to be made."""
    provider: str # e.g., 'here', 'overpass'
    endpoint: str
    api_class: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an API call succeeds."""
    provider: str
    endpoint: str
    latency_ms: float
    status_code: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when an API call fails definitively (after retries)."""
    provider: str
    endpoint: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when an API call is deferred due to rate limiting."""
    provider: str
    endpoint: str
    api_class: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed API call."""
    provider: str
    endpoint: str
    attempt_number: int
    delay_seconds: float
    reason: str # 'rate_limited', 'timeout', 'network'
    timestamp: float = field(default_factory=time.time)

@dataclass
class ProviderFallbackTriggered(DomainEvent):
    """Event triggered when a provider yields nothing and the next one is tried."""
    failed_provider: str
    fallback_provider: str
    reason: str # e.g., 'QuotaExceededError', 'no_data'
    timestamp: float = field(default_factory=time.time)


EventSink = Callable[[DomainEvent], None]

def dispatch_event(event: DomainEvent) -> None:
    """Default event sink: events are only logged."""
    logger.debug(f"EVENT: {event}")
