"""Sky-view centering for a locality, and the guard against stale deferred updates."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from skylore.models import CenteringDirective
from skylore.projection import to_planar
from skylore.sidereal import local_sidereal_time_deg

LOG = logging.getLogger(__name__)

T = TypeVar("T")


def centering_for(
    east_longitude_deg: float, instant: datetime | float
) -> CenteringDirective:
    """Compute the view centre that puts the local meridian in the middle.

    Declination is fixed at 0 so the celestial equator runs through the centre.

    Args:
        east_longitude_deg: Observer longitude, east positive.
        instant: Aware datetime, naive UTC datetime, or unix seconds.

    Returns:
        CenteringDirective carrying both the [0, 360) skyview centre and the
        (-180, 180] rotate centre.
    """
    lst = local_sidereal_time_deg(instant, east_longitude_deg)
    lon, _ = to_planar(lst, 0.0)
    return CenteringDirective(skyview_center=(lst, 0.0), rotate_center=lon)


class StaleGuard:
    """Monotonic token counter guarding deferred view operations.

    A token is captured when an operation is scheduled; its result is applied
    only if no newer operation has been scheduled since.
    """

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def schedule(
        self, work: Awaitable[T], apply: Callable[[T], None]
    ) -> "asyncio.Task[bool]":
        """Issue a token now and start awaiting `work` in a task.

        Must be called from a running event loop. The task resolves to True if
        the result was applied, False if a later call superseded it.
        """
        token = self.issue()
        return asyncio.ensure_future(self._complete(token, work, apply))

    async def _complete(
        self, token: int, work: Awaitable[T], apply: Callable[[T], None]
    ) -> bool:
        result = await work
        if not self.is_current(token):
            LOG.debug(
                "Dropping stale deferred result (token %d < %d)", token, self._latest
            )
            return False
        apply(result)
        return True
