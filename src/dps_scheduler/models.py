"""Shared data models used across the scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class Location:
    """A DPS office returned by the location search."""

    id: int
    name: str
    distance: float


@dataclass(frozen=True)
class TimeSlot:
    """A single open appointment slot."""

    slot_id: int
    start: datetime
    start_raw: str
    formatted: str
    duration: int


@dataclass(frozen=True)
class AvailabilityWindow:
    """Open slots for one location on one date, as returned by a single poll."""

    date: datetime
    slots: Tuple[TimeSlot, ...] = ()

    @property
    def has_slots(self) -> bool:
        return bool(self.slots)


@dataclass(frozen=True)
class Candidate:
    """A slot selected for reservation together with its location."""

    location: Location
    slot: TimeSlot


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of probing one location: the candidate, if any, and the soonest open date."""

    location: Location
    candidate: Optional[Candidate] = None
    next_available: Optional[datetime] = None


@dataclass(frozen=True)
class ExistingBooking:
    """A booking already on file for the applicant."""

    confirmation_number: str
    site_name: str
    booking_date_time: Optional[datetime]


@dataclass
class PollRound:
    """Counter and start time of a polling round, used for status messages."""

    number: int = 0
    started_at: datetime = field(default_factory=datetime.now)

    def advance(self, now: Optional[datetime] = None) -> "PollRound":
        self.number += 1
        self.started_at = now or datetime.now()
        return self


@dataclass
class StatusMessage:
    """Reference to the last status message sent, used for in-place edits."""

    message_id: Optional[int] = None

    @property
    def sent(self) -> bool:
        return self.message_id is not None

    def invalidate(self) -> None:
        self.message_id = None
