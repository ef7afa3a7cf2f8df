"""In-process location feed: the push-model side of the sensing layer.

Whatever produces fixes (a platform sensor bridge, a recorded track) calls
``publish``; consumers register listeners and receive every fix in order.
"""

import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Union

from gpsinfo.domain.models.common import Kmh
from gpsinfo.domain.models.location import LocationFix
from gpsinfo.utils.units import mps_to_kmh

logger = logging.getLogger(__name__)

LocationListener = Callable[[LocationFix], Union[None, Awaitable[None]]]


class LocationFeed:
    """Distributes location fixes to registered listeners."""

    def __init__(self):
        self._listeners: List[LocationListener] = []
        self._current: Optional[LocationFix] = None

    def add_listener(self, listener: LocationListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: LocationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get_current_location(self) -> Optional[LocationFix]:
        return self._current

    async def publish(self, fix: LocationFix) -> None:
        """Stores the fix and notifies listeners in registration order.

        Coroutine listeners are awaited before the next listener runs. A
        listener that raises is logged and does not stop the others.
        """
        self._current = fix
        for listener in list(self._listeners):
            try:
                outcome = listener(fix)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Location listener {listener!r} failed: {e}", exc_info=True)

    @staticmethod
    def convert_speed_to_kmh(speed_mps: Optional[float]) -> Optional[Kmh]:
        return mps_to_kmh(speed_mps)
