"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like cache keys, API
classes and timestamps, ensuring consistency and type safety.
"""

from datetime import datetime
from typing import Literal, NewType, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are plain values at runtime.
EpochMillis = NewType("EpochMillis", int)      # Milliseconds since the Unix epoch
Kmh = NewType("Kmh", float)                    # Speed in kilometres per hour
Meters = NewType("Meters", float)              # Distance in metres

# === Caching Context ===
CacheKey = NewType("CacheKey", str)            # Spatial bucket key, e.g. "43.000,21.000"

# === API Resilience Context ===
ApiClass = NewType("ApiClass", str)            # 'geocoding', 'routing', 'fleet'

GEOCODING = ApiClass("geocoding")
ROUTING = ApiClass("routing")
FLEET = ApiClass("fleet")

# === Speed Limit Context ===
Accuracy = Literal["high", "medium", "low"]
Source = Literal["primary", "fallback", "default"]

UNIT_KMH = "km/h"

# --- Structured Data ---
class UsageStats(TypedDict):
    """Snapshot of the primary provider's monthly quota usage."""
    request_count: int
    remaining_requests: int
    reset_time: datetime

class BackoffPolicy(TypedDict):
    """Value Object representing retry backoff configuration."""
    max_retries: int
    rate_limit_base_ms: int
    rate_limit_cap_ms: int
    retry_step_ms: int
