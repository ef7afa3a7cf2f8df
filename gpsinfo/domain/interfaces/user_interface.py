"""Interface for presenting resolution results to the user.

Defines the contract for displaying speed limits, monitor statuses, usage
statistics, errors and informational messages, allowing different UI
implementations (e.g., console, GUI).
"""

import abc
from typing import Any, Optional, Sequence

# Import relevant domain models
from ..models.common import UsageStats
from ..models.speed_limit import SpeedLimitResult

class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_speed_limit(
        self,
        result: Optional[SpeedLimitResult],
        speed_kmh: Optional[float] = None,
        is_speeding: bool = False,
    ) -> None:
        """Displays a single resolved speed limit.

        Args:
            result: The resolved limit, or None when no data is available.
            speed_kmh: Current speed, if known, shown next to the limit.
            is_speeding: Whether the speeding alert is active.
        """
        pass

    @abc.abstractmethod
    def display_statuses(self, statuses: Sequence[Any]) -> None:
        """Displays one row per monitored fix (see SpeedStatus)."""
        pass

    @abc.abstractmethod
    def display_usage(self, stats: Optional[UsageStats]) -> None:
        """Displays the primary provider's quota usage, if enabled."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass
