"""Interface for caching mechanisms.

Defines the contract for storing and retrieving resolved speed limits keyed
by spatial bucket, with TTL-based expiry.
"""

import abc
from typing import Optional

# Import relevant domain models
from ..models.common import CacheKey
from ..models.speed_limit import SpeedLimitResult

class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[SpeedLimitResult]:
        """Retrieves an item from the cache asynchronously.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached result if found and not expired, otherwise None.
        """
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: SpeedLimitResult) -> None:
        """Stores an item in the cache asynchronously.

        Implementations sweep expired entries on every write.

        Args:
            key: The cache key to store the item under.
            value: The result to store. Its timestamp is the start of its TTL.
        """
        pass

    @abc.abstractmethod
    async def delete(self, key: CacheKey) -> None:
        """Deletes an item from the cache asynchronously."""
        pass

    @abc.abstractmethod
    async def clear(self) -> None:
        """Clears all items from the cache asynchronously."""
        pass
