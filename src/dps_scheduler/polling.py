"""Bounded-concurrency polling loop with pause/resume."""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import structlog

from .config import Settings
from .errors import NotifierError
from .models import Candidate, Location, ProbeResult
from .notifier import Notifier
from .prober import LocationProber
from .state import RunContext
from .summariser import build_round_summary

LOGGER = structlog.get_logger(__name__)

RoundResult = Union[ProbeResult, BaseException]


class PollingQueue:
    """Probes every tracked location once per round, forever.

    Each probe waits for a free concurrency slot and for the dispatch gate to
    be open before it starts; pausing therefore blocks new probes while
    probes already running finish normally.
    """

    def __init__(
        self,
        settings: Settings,
        prober: LocationProber,
        notifier: Notifier,
        context: RunContext,
        on_candidate: Callable[[Candidate], Awaitable[None]],
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._settings = settings
        self._prober = prober
        self._notifier = notifier
        self._context = context
        self._on_candidate = on_candidate
        self._sleep = sleep

    @property
    def paused(self) -> bool:
        return self._context.gate.paused

    def pause(self) -> bool:
        return self._context.gate.pause()

    def resume(self) -> bool:
        return self._context.gate.resume()

    async def run(self, locations: Sequence[Location]) -> None:
        """Poll until a terminal outcome is raised."""
        LOGGER.info("queue.start", locations=len(locations), concurrency=self._settings.concurrency)
        while True:
            await self.run_round(locations)
            await self._sleep(self.next_delay())

    async def run_round(self, locations: Sequence[Location]) -> List[RoundResult]:
        """Dispatch one probe per location and wait for all of them to settle."""
        poll_round = self._context.round.advance()
        LOGGER.info("round.start", round=poll_round.number)

        semaphore = asyncio.Semaphore(self._settings.concurrency)
        results = await asyncio.gather(
            *(self._dispatch(semaphore, location) for location in locations),
            return_exceptions=True,
        )
        if self._context.outcome is not None:
            raise self._context.outcome

        for location, result in zip(locations, results):
            if isinstance(result, BaseException):
                LOGGER.warning("probe.failed", location=location.name, error=str(result) or type(result).__name__)

        summary = build_round_summary(poll_round, results)
        LOGGER.info("round.summary", round=poll_round.number, summary=summary)
        try:
            await self._notifier.report(summary)
        except NotifierError as exc:
            LOGGER.warning("round.notify_failed", error=str(exc))
        return results

    def next_delay(self) -> float:
        jitter = self._settings.jitter_seconds
        return max(0.0, self._settings.interval_seconds + random.uniform(-jitter, jitter))

    async def _dispatch(self, semaphore: asyncio.Semaphore, location: Location) -> Optional[ProbeResult]:
        async with semaphore:
            await self._context.gate.wait_running()
            if self._context.finished:
                return None
            result = await self._prober.probe(location)
            if result.candidate is not None and not self._context.reservation.holding:
                await self._on_candidate(result.candidate)
            return result
