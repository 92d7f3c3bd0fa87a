"""Utilities for deciding whether an availability date falls in the booking window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .models import AvailabilityWindow


@dataclass(frozen=True)
class DayWindow:
    """Day-offset range ``[start_days, end_days)`` measured from "now".

    ``start_days`` is optional: with only an upper bound every date earlier
    than ``now + end_days`` qualifies.
    """

    end_days: int
    start_days: Optional[int] = None

    def __post_init__(self) -> None:
        if self.start_days is not None and self.start_days >= self.end_days:
            raise ValueError(
                f"Day window start ({self.start_days}) must be before its end ({self.end_days})"
            )

    def contains(self, when: datetime, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(tz=when.tzinfo)
        offset = when - now
        if self.start_days is not None and offset < timedelta(days=self.start_days):
            return False
        return offset < timedelta(days=self.end_days)

    def describe(self) -> str:
        if self.start_days is None:
            return f"within {self.end_days} days"
        return f"between {self.start_days} and {self.end_days} days"


def qualifying_windows(
    windows: Iterable[AvailabilityWindow],
    day_window: DayWindow,
    now: Optional[datetime] = None,
) -> List[AvailabilityWindow]:
    """Windows inside ``day_window`` that still have an open slot, in server order."""
    return [
        window
        for window in windows
        if window.has_slots and day_window.contains(window.date, now)
    ]
