from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import httpx
import pytest

from dps_scheduler.config import Settings
from dps_scheduler.errors import NotifierError
from dps_scheduler.models import Candidate, Location, TimeSlot

BASE_SETTINGS: dict[str, Any] = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "dob": "12/10/1990",
    "last_four_ssn": "1234",
    "email": "ada@example.com",
    "zip_code": "78701",
    "miles": 30,
    "days_around": 5,
    "interval_seconds": 0,
    "jitter_seconds": 0,
}


def make_settings(**overrides: Any) -> Settings:
    values = {**BASE_SETTINGS, **overrides}
    return Settings(_env_file=None, **values)


def make_slot(slot_id: int = 1, start: Optional[datetime] = None, duration: int = 20) -> TimeSlot:
    start = start or datetime(2026, 11, 3, 9, 0)
    return TimeSlot(
        slot_id=slot_id,
        start=start,
        start_raw=start.isoformat(),
        formatted=start.strftime("%m/%d/%Y %I:%M %p"),
        duration=duration,
    )


def make_candidate(location_id: int = 1, name: str = "Austin", slot_id: int = 1) -> Candidate:
    return Candidate(location=Location(id=location_id, name=name, distance=3.0), slot=make_slot(slot_id))


def dates_payload(*days: tuple[int, int], now: Optional[datetime] = None) -> dict[str, Any]:
    """Build an AvailableLocationDates body from (day offset, slot count) pairs."""
    now = now or datetime.now()
    entries = []
    for offset, count in days:
        day = (now + timedelta(days=offset)).replace(microsecond=0)
        entries.append(
            {
                "AvailabilityDate": day.isoformat(),
                "AvailableTimeSlots": [
                    {
                        "SlotId": offset * 100 + index,
                        "StartDateTime": (day + timedelta(minutes=20 * index)).isoformat(),
                        "FormattedStartDateTime": day.strftime("%m/%d/%Y") + f" slot {index}",
                        "Duration": 20,
                    }
                    for index in range(count)
                ],
            }
        )
    return {"LocationAvailabilityDates": entries}



class FakeRemote:
    """In-memory stand-in for the scheduling API and notification endpoints."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.routes: dict[str, Any] = {}

    def route(self, path: str, status: int = 200, payload: Any = None) -> None:
        self.routes[path] = (status, payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.calls.append((path, body))
        route = self.routes.get(path)
        if route is None:
            return httpx.Response(404, json={"error": "no route"})
        if callable(route):
            return route(body)
        status, payload = route
        return httpx.Response(status, json=payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def paths(self) -> list[str]:
        return [path for path, _ in self.calls]

    def bodies(self, path: str) -> list[Any]:
        return [body for called, body in self.calls if called == path]


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.messages: list[tuple[str, bool]] = []
        self.fail = fail

    async def report(self, message: str, important: bool = False) -> Optional[int]:
        if self.fail:
            raise NotifierError("channel down")
        self.messages.append((message, important))
        return len(self.messages)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()
