"""Hold and book workflow for a discovered candidate slot."""

from __future__ import annotations

import structlog

from .api import SchedulingApi
from .config import Settings
from .errors import ApiError, ApiSoftFailure, ExitCode, NotifierError, RunTerminated, TransportError
from .models import Candidate
from .notifier import Notifier
from .state import RunContext
from .summariser import build_booking_message

LOGGER = structlog.get_logger(__name__)


class ReservationWorkflow:
    """Two-step hold -> book transaction guarded by write-once latches.

    Soft failures resume the polling queue and return. Terminal outcomes
    (booked, dry run, failed cancellation) are recorded on the run context
    and raised as ``RunTerminated``.
    """

    def __init__(self, settings: Settings, api: SchedulingApi, notifier: Notifier, context: RunContext):
        self._settings = settings
        self._api = api
        self._notifier = notifier
        self._context = context

    async def hold(self, candidate: Candidate) -> None:
        """Pause polling and try to hold ``candidate``; books it on success."""
        state = self._context.reservation
        async with state.lock:
            if state.holding or self._context.finished:
                LOGGER.info(
                    "hold.skipped",
                    location=candidate.location.name,
                    slot_id=candidate.slot.slot_id,
                    reason="hold already attempted",
                )
                return

            self._context.gate.pause()
            self._refuse_in_dry_run("hold", candidate)

            if state.existing_confirmation:
                await self.cancel_existing()

            LOGGER.info("hold.start", location=candidate.location.name, slot=candidate.slot.formatted)
            try:
                await self._api.hold_slot(candidate.slot)
            except (ApiSoftFailure, TransportError) as exc:
                LOGGER.warning("hold.failed", location=candidate.location.name, error=str(exc))
                self._context.gate.resume()
                return

            state.mark_holding()
            LOGGER.info("hold.success", location=candidate.location.name, slot_id=candidate.slot.slot_id)
            await self.book(candidate)

    async def book(self, candidate: Candidate) -> None:
        """Confirm the held slot. Callers hold the reservation lock."""
        state = self._context.reservation
        if state.booked:
            LOGGER.info("book.skipped", reason="already booked")
            return
        self._refuse_in_dry_run("book", candidate)

        LOGGER.info("book.start", location=candidate.location.name)
        try:
            # The eligibility id has to be fresh when the booking is submitted.
            response_id = await self._api.response_id()
            confirmation = await self._api.book_slot(candidate.slot, candidate.location, response_id)
        except (ApiSoftFailure, ApiError, TransportError) as exc:
            LOGGER.warning("book.failed", location=candidate.location.name, error=str(exc))
            self._context.gate.resume()
            return

        state.mark_booked()
        url = self._settings.appointment_url(confirmation)
        LOGGER.info("book.success", confirmation_number=confirmation, appointment_url=url)

        try:
            await self._notifier.report(build_booking_message(self._settings, candidate, confirmation), important=True)
        except NotifierError as exc:
            LOGGER.error("book.notify_failed", error=str(exc))

        raise self._context.terminate(
            RunTerminated(
                ExitCode.BOOKED,
                f"Booked {candidate.location.name} at {candidate.slot.formatted}. "
                f"Confirmation number {confirmation}; print it at {url}",
            )
        )

    async def cancel_existing(self) -> None:
        """Cancel the booking staged at startup; any failure ends the run."""
        state = self._context.reservation
        confirmation = state.existing_confirmation
        if not confirmation:
            return
        self._refuse_in_dry_run("cancel")

        LOGGER.info("cancel.start", confirmation_number=confirmation)
        try:
            await self._api.cancel_booking(confirmation)
        except (ApiError, TransportError) as exc:
            LOGGER.error("cancel.failed", confirmation_number=confirmation, error=str(exc))
            raise self._context.terminate(
                RunTerminated(
                    ExitCode.CANCEL_FAILED,
                    f"Failed to cancel existing booking {confirmation}; please cancel it manually",
                )
            ) from exc
        state.existing_confirmation = None
        LOGGER.info("cancel.success", confirmation_number=confirmation)

    def _refuse_in_dry_run(self, step: str, candidate: Candidate | None = None) -> None:
        if not self._settings.dry_run:
            return
        detail = f" for {candidate.location.name} at {candidate.slot.formatted}" if candidate else ""
        LOGGER.warning("dry_run.refused", step=step)
        raise self._context.terminate(
            RunTerminated(ExitCode.DRY_RUN, f"Dry run: refusing to {step}{detail}")
        )
