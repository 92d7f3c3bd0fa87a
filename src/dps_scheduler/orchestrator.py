"""Startup sequencing and hand-off to the polling loop."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from typing import Awaitable, Callable, List, Optional

import httpx
import structlog

from .api import SchedulingApi
from .config import Settings
from .errors import ApiError, ExitCode, NotifierError, RunTerminated, TransportError
from .keepalive import KeepAliveServer
from .models import Location
from .notifier import Notifier, create_notifier
from .polling import PollingQueue
from .prober import LocationProber
from .reservation import ReservationWorkflow
from .state import RunContext
from .summariser import build_starting_message
from .transport import SchedulerTransport

LOGGER = structlog.get_logger(__name__)


class Orchestrator:
    """Runs the startup steps in order, then polls until a terminal outcome.

    Every startup step is fatal on failure. ``run`` never returns normally:
    it ends by raising ``RunTerminated``.
    """

    def __init__(
        self,
        settings: Settings,
        api: SchedulingApi,
        notifier: Notifier,
        context: Optional[RunContext] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.api = api
        self.notifier = notifier
        self.context = context or RunContext()
        self.workflow = ReservationWorkflow(settings, api, notifier, self.context)
        self.queue = PollingQueue(
            settings,
            LocationProber(api, settings.day_window),
            notifier,
            self.context,
            self.workflow.hold,
            sleep=sleep,
        )

    async def run(self) -> None:
        async with AsyncExitStack() as stack:
            # Hosting platforms expect the port bound before the slow startup lookups.
            if self.settings.webserver:
                await stack.enter_async_context(KeepAliveServer(self.context, self.settings.port))
            await self.announce_start()
            await self.check_existing_booking()
            locations = await self.load_locations()

            LOGGER.info("locations.polling", window=self.settings.day_window.describe())
            await self.queue.run(locations)

    async def announce_start(self) -> None:
        if not self.settings.notifications_enabled:
            return
        try:
            await self.notifier.report(build_starting_message(self.settings))
        except NotifierError as exc:
            raise RunTerminated(ExitCode.NOTIFIER_SETUP, f"Could not send the starting notification: {exc}") from exc

    async def check_existing_booking(self) -> None:
        try:
            bookings = await self.api.existing_bookings()
        except (ApiError, TransportError) as exc:
            raise RunTerminated(ExitCode.STARTUP_FAILED, f"Could not check for an existing booking: {exc}") from exc
        if not bookings:
            return

        booking = bookings[0]
        when = booking.booking_date_time.strftime("%m/%d/%Y %I:%M %p") if booking.booking_date_time else "unknown time"
        LOGGER.warning(
            "booking.existing",
            site=booking.site_name,
            when=when,
            confirmation_number=booking.confirmation_number,
        )
        if self.settings.existing_booking_policy != "replace":
            raise RunTerminated(
                ExitCode.EXISTING_BOOKING,
                f"You already have a booking at {booking.site_name} on {when}; cancel it first "
                "or set DPS_EXISTING_BOOKING_POLICY=replace",
            )
        self.context.reservation.existing_confirmation = booking.confirmation_number
        LOGGER.info("booking.staged_for_cancel", confirmation_number=booking.confirmation_number)

    async def load_locations(self) -> List[Location]:
        try:
            locations = await self.api.locations()
        except (ApiError, TransportError) as exc:
            raise RunTerminated(ExitCode.STARTUP_FAILED, f"Could not fetch available locations: {exc}") from exc
        if not locations:
            raise RunTerminated(
                ExitCode.STARTUP_FAILED,
                f"No locations within {self.settings.miles:g} miles of {self.settings.zip_code}",
            )
        LOGGER.info(
            "locations.found",
            count=len(locations),
            names=", ".join(location.name for location in locations),
        )
        return locations


async def run(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
    """Build the components and run the scheduler until it terminates.

    ``client``, when given, is shared by the transport and the notifier.
    """
    async with AsyncExitStack() as stack:
        transport = await stack.enter_async_context(SchedulerTransport(settings, client))
        if client is None:
            client = await stack.enter_async_context(httpx.AsyncClient(timeout=15.0))
        api = SchedulingApi(settings, transport)
        notifier = create_notifier(settings, client)
        await Orchestrator(settings, api, notifier).run()
