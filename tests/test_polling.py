from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from conftest import RecordingNotifier, make_settings, make_slot
from dps_scheduler.date_window import DayWindow
from dps_scheduler.errors import ApiError, ExitCode, RunTerminated
from dps_scheduler.models import AvailabilityWindow, Location, ProbeResult
from dps_scheduler.polling import PollingQueue
from dps_scheduler.prober import LocationProber
from dps_scheduler.state import RunContext

NOW = datetime(2026, 10, 19, 8, 0)
A = Location(id=1, name="A", distance=1.0)
B = Location(id=2, name="B", distance=2.0)
C = Location(id=3, name="C", distance=3.0)


def _window(day_offset, *slot_ids):
    day = NOW + timedelta(days=day_offset)
    return AvailabilityWindow(date=day, slots=tuple(make_slot(i, start=day) for i in slot_ids))


class StubApi:
    def __init__(self, by_location, log=None):
        self.by_location = by_location
        self.log = log if log is not None else []

    async def location_dates(self, location):
        self.log.append(f"probe:{location.name}")
        await asyncio.sleep(0)
        value = self.by_location[location.id]
        if isinstance(value, Exception):
            raise value
        return value


def _queue(api, context, on_candidate, notifier=None, sleep=None, **settings_overrides):
    settings = make_settings(**settings_overrides)
    prober = LocationProber(api, DayWindow(end_days=5, start_days=0), clock=lambda: NOW)
    kwargs = {"sleep": sleep} if sleep else {}
    return PollingQueue(settings, prober, notifier or RecordingNotifier(), context, on_candidate, **kwargs)


def test_first_candidate_triggers_workflow_and_pause():
    context = RunContext()
    notifier = RecordingNotifier()
    invoked = []

    async def on_candidate(candidate):
        context.gate.pause()
        invoked.append(candidate)

    api = StubApi({1: [_window(3, 31)], 2: [_window(10, 101)]})
    queue = _queue(api, context, on_candidate, notifier)

    results = asyncio.run(queue.run_round([A, B]))

    assert [c.slot.slot_id for c in invoked] == [31]
    assert invoked[0].location == A
    assert queue.paused
    assert results[1].candidate is None
    summary, important = notifier.messages[-1]
    assert not important
    assert "1 with a slot in window, 1 without, 0 failed" in summary
    assert "Soonest availability: A on" in summary


def test_probe_failure_does_not_abort_siblings():
    context = RunContext()
    notifier = RecordingNotifier()
    api = StubApi({1: ApiError("boom", 500), 2: [_window(8, 1)], 3: []})
    queue = _queue(api, context, lambda c: None, notifier)

    results = asyncio.run(queue.run_round([A, B, C]))

    assert isinstance(results[0], ApiError)
    assert isinstance(results[1], ProbeResult)
    assert isinstance(results[2], ProbeResult)
    assert "0 with a slot in window, 2 without, 1 failed" in notifier.messages[-1][0]
    assert "B on" in notifier.messages[-1][0]


def test_paused_queue_starts_no_new_probes_until_resumed():
    context = RunContext()
    log = []

    async def on_candidate(candidate):
        context.gate.pause()
        log.append(f"candidate:{candidate.location.name}")

        def resume():
            log.append("resume")
            context.gate.resume()

        asyncio.get_running_loop().call_later(0.05, resume)

    api = StubApi({1: [_window(1, 11)], 2: [], 3: []}, log)
    queue = _queue(api, context, on_candidate, concurrency=1)

    asyncio.run(queue.run_round([A, B, C]))

    assert log == ["probe:A", "candidate:A", "resume", "probe:B", "probe:C"]
    assert not queue.paused


def test_no_further_candidates_routed_once_holding():
    context = RunContext()
    context.reservation.mark_holding()
    invoked = []

    async def on_candidate(candidate):
        invoked.append(candidate)

    api = StubApi({1: [_window(1, 11)]})
    asyncio.run(_queue(api, context, on_candidate).run_round([A]))

    assert invoked == []


def test_terminal_outcome_stops_round_before_summary():
    context = RunContext()
    notifier = RecordingNotifier()

    async def on_candidate(candidate):
        raise context.terminate(RunTerminated(ExitCode.BOOKED, "booked"))

    api = StubApi({1: [_window(1, 11)], 2: [_window(2, 21)]})
    queue = _queue(api, context, on_candidate, notifier, concurrency=1)

    with pytest.raises(RunTerminated) as excinfo:
        asyncio.run(queue.run_round([A, B]))

    assert excinfo.value.exit_code is ExitCode.BOOKED
    assert api.log == ["probe:A"]
    assert notifier.messages == []


def test_run_loops_with_delay_until_terminated():
    context = RunContext()
    delays = []
    rounds = {"count": 0}

    class CountingApi(StubApi):
        async def location_dates(self, location):
            rounds["count"] += 1
            if rounds["count"] == 3:
                return [_window(1, 11)]
            return []

    async def on_candidate(candidate):
        raise context.terminate(RunTerminated(ExitCode.BOOKED, "booked"))

    async def fake_sleep(delay):
        delays.append(delay)

    queue = _queue(CountingApi({}), context, on_candidate, sleep=fake_sleep, interval_seconds=10, jitter_seconds=1)

    with pytest.raises(RunTerminated):
        asyncio.run(queue.run([A]))

    assert rounds["count"] == 3
    assert context.round.number == 3
    assert len(delays) == 2
    assert all(9 <= delay <= 11 for delay in delays)


def test_summary_notification_failure_is_not_fatal():
    context = RunContext()
    api = StubApi({1: []})
    queue = _queue(api, context, lambda c: None, RecordingNotifier(fail=True))

    results = asyncio.run(queue.run_round([A]))

    assert results[0].candidate is None


def test_next_delay_never_negative():
    queue = _queue(StubApi({}), RunContext(), lambda c: None, interval_seconds=0.1, jitter_seconds=5)

    assert all(queue.next_delay() >= 0 for _ in range(50))
