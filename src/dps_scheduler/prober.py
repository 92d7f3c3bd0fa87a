"""Per-location availability probe."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

import structlog

from .api import SchedulingApi
from .date_window import DayWindow, qualifying_windows
from .models import Candidate, Location, ProbeResult

LOGGER = structlog.get_logger(__name__)


class LocationProber:
    """Finds the first bookable slot for a location inside the day window.

    Fetch failures propagate to the caller so that a failed location stays
    distinguishable from one that simply has nothing open.
    """

    def __init__(
        self,
        api: SchedulingApi,
        day_window: DayWindow,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._api = api
        self._day_window = day_window
        self._clock = clock

    async def probe(self, location: Location) -> ProbeResult:
        windows = await self._api.location_dates(location)
        open_windows = [window for window in windows if window.has_slots]
        next_available: Optional[datetime] = min((w.date for w in open_windows), default=None)

        matches = qualifying_windows(open_windows, self._day_window, self._clock())
        if not matches:
            LOGGER.info(
                "probe.unavailable",
                location=location.name,
                window=self._day_window.describe(),
                next_available=next_available.isoformat() if next_available else None,
            )
            return ProbeResult(location=location, next_available=next_available)

        # Server order is trusted: first qualifying date, first slot on it.
        slot = matches[0].slots[0]
        LOGGER.info("probe.candidate", location=location.name, slot=slot.formatted, slot_id=slot.slot_id)
        return ProbeResult(
            location=location,
            candidate=Candidate(location=location, slot=slot),
            next_available=next_available,
        )
