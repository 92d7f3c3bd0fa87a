"""Run-scoped shared state: reservation latches and the dispatch gate."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

import structlog

from .errors import RunTerminated
from .models import PollRound

LOGGER = structlog.get_logger(__name__)


@dataclass
class ReservationState:
    """Write-once ``holding``/``booked`` latches plus a staged existing booking.

    Both latches only ever move from False to True. Callers mutate them while
    holding ``lock`` so that two probes finding a candidate at the same time
    cannot both issue a hold.
    """

    holding: bool = False
    booked: bool = False
    existing_confirmation: Optional[str] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def mark_holding(self) -> None:
        self.holding = True

    def mark_booked(self) -> None:
        if not self.holding:
            raise RuntimeError("Cannot mark a booking without a held slot")
        self.booked = True


class DispatchGate:
    """Pause flag checked by the polling queue before each probe starts."""

    def __init__(self) -> None:
        self._running = asyncio.Event()
        self._running.set()

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    def pause(self) -> bool:
        """Stop dispatching new probes. Returns True if this call paused the gate."""
        if self.paused:
            return False
        self._running.clear()
        LOGGER.info("queue.paused")
        return True

    def resume(self) -> bool:
        """Restart dispatching. Returns True if this call resumed the gate."""
        if not self.paused:
            return False
        self._running.set()
        LOGGER.info("queue.resumed")
        return True

    async def wait_running(self) -> None:
        await self._running.wait()

    def release(self) -> None:
        """Wake every waiter without logging a resume; used once the run ends."""
        self._running.set()


@dataclass
class RunContext:
    """Single-owner context threaded through the orchestrator, queue and workflow."""

    reservation: ReservationState = field(default_factory=ReservationState)
    gate: DispatchGate = field(default_factory=DispatchGate)
    round: PollRound = field(default_factory=PollRound)
    outcome: Optional[RunTerminated] = None

    @property
    def finished(self) -> bool:
        return self.outcome is not None

    def terminate(self, outcome: RunTerminated) -> RunTerminated:
        """Record the terminal outcome and release any probe waiting on the gate."""
        if self.outcome is None:
            self.outcome = outcome
        self.gate.release()
        return self.outcome
