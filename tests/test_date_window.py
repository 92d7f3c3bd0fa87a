from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import make_slot
from dps_scheduler.date_window import DayWindow, qualifying_windows
from dps_scheduler.models import AvailabilityWindow

NOW = datetime(2026, 10, 19, 8, 30)


@pytest.mark.parametrize(
    ("offset_days", "expected"),
    [(-1, False), (0, True), (3, True), (4.99, True), (5, False), (10, False)],
)
def test_bounded_window_is_half_open(offset_days, expected):
    window = DayWindow(end_days=5, start_days=0)
    assert window.contains(NOW + timedelta(days=offset_days), NOW) is expected


@pytest.mark.parametrize(("offset_days", "expected"), [(-3, True), (0, True), (6.5, True), (7, False)])
def test_upper_bound_only(offset_days, expected):
    window = DayWindow(end_days=7)
    assert window.contains(NOW + timedelta(days=offset_days), NOW) is expected


def test_lower_bound_excludes_near_dates():
    window = DayWindow(end_days=10, start_days=2)
    assert not window.contains(NOW + timedelta(days=1), NOW)
    assert window.contains(NOW + timedelta(days=2), NOW)


def test_start_must_precede_end():
    with pytest.raises(ValueError):
        DayWindow(end_days=3, start_days=3)


def test_qualifying_windows_requires_slots_and_keeps_server_order():
    windows = [
        AvailabilityWindow(date=NOW + timedelta(days=4), slots=(make_slot(4),)),
        AvailabilityWindow(date=NOW + timedelta(days=1), slots=()),
        AvailabilityWindow(date=NOW + timedelta(days=2), slots=(make_slot(2),)),
        AvailabilityWindow(date=NOW + timedelta(days=9), slots=(make_slot(9),)),
    ]

    selected = qualifying_windows(windows, DayWindow(end_days=5, start_days=0), NOW)

    assert [w.slots[0].slot_id for w in selected] == [4, 2]


def test_describe():
    assert DayWindow(end_days=7).describe() == "within 7 days"
    assert DayWindow(end_days=7, start_days=2).describe() == "between 2 and 7 days"
