"""Interface for remote speed limit providers.

Defines the contract for resolving a geographic point to a speed limit via
an external mapping service (e.g., HERE routing, OpenStreetMap Overpass).
"""

import abc
from typing import Optional

# Import relevant domain models
from ..models.location import LocationFix
from ..models.speed_limit import SpeedLimitResult


class SpeedLimitProvider(abc.ABC):
    """Abstract Base Class for speed limit lookups."""

    #: Short name used in logs and events (e.g. 'here', 'overpass').
    name: str = "provider"

    @abc.abstractmethod
    async def resolve(self, location: LocationFix) -> Optional[SpeedLimitResult]:
        """Resolves the speed limit at the given location asynchronously.

        Args:
            location: The fix to resolve.

        Returns:
            A SpeedLimitResult in km/h, or None if the provider has no usable
            data for this point (including malformed responses).

        Raises:
            QuotaExceededError: If the provider's quota is exhausted.
            ProviderRequestError: If the request fails definitively.
        """
        pass
