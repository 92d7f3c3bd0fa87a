"""Typed wrapper over the DPS scheduling API endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import structlog
from dateutil import parser as date_parser
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Settings
from .errors import ApiError, ApiSoftFailure, TransportError
from .models import AvailabilityWindow, ExistingBooking, Location, TimeSlot
from .transport import SchedulerTransport, TransportResponse

LOGGER = structlog.get_logger(__name__)

T = TypeVar("T")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an API timestamp, returning None for blanks."""
    if not value:
        return None
    try:
        return date_parser.isoparse(str(value))
    except (ValueError, OverflowError):
        LOGGER.debug("api.timestamp_unparsed", value=value)
        return None


class SchedulingApi:
    """Builds request payloads from settings and parses the API responses."""

    def __init__(self, settings: Settings, transport: SchedulerTransport, *, retry_wait=None):
        self._settings = settings
        self._transport = transport
        self._retry_wait = retry_wait if retry_wait is not None else wait_exponential(multiplier=1, min=1, max=8)

    def _identity(self) -> dict[str, Any]:
        return {
            "FirstName": self._settings.first_name,
            "LastName": self._settings.last_name,
            "DateOfBirth": self._settings.dob,
            "LastFourDigitsSsn": self._settings.last_four_ssn.get_secret_value(),
        }

    def _slot_identity(self) -> dict[str, Any]:
        return {
            "FirstName": self._settings.first_name,
            "LastName": self._settings.last_name,
            "DateOfBirth": self._settings.dob,
            "Last4Ssn": self._settings.last_four_ssn.get_secret_value(),
        }

    async def _lookup(self, step: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run a read-only lookup, retrying transport failures."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TransportError),
            wait=self._retry_wait,
            stop=stop_after_attempt(self._settings.lookup_attempts),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    LOGGER.warning("api.lookup.retry", step=step, attempt=attempt.retry_state.attempt_number)
                return await call()
        raise RuntimeError(f"{step} lookup did not run")  # safety net

    @staticmethod
    def _decode(response: TransportResponse, step: str) -> Any:
        if not response.ok:
            raise ApiError(f"{step} failed with {response.status_code}", response.status_code, response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"{step} returned an unreadable body", response.status_code, response.text) from exc

    async def existing_bookings(self) -> List[ExistingBooking]:
        """Bookings already on file for the applicant; empty when there are none."""

        async def call() -> List[ExistingBooking]:
            response = await self._transport.send("/api/Booking", "POST", self._identity())
            return [
                ExistingBooking(
                    confirmation_number=str(item["ConfirmationNumber"]),
                    site_name=str(item.get("SiteName", "")),
                    booking_date_time=parse_timestamp(item.get("BookingDateTime")),
                )
                for item in self._decode(response, "existing booking lookup") or []
            ]

        return await self._lookup("existing_bookings", call)

    async def response_id(self) -> int:
        """Fresh eligibility response identifier required by the booking call."""

        async def call() -> int:
            payload = {**self._identity(), "CardNumber": ""}
            response = await self._transport.send("/api/Eligibility", "POST", payload)
            data = self._decode(response, "eligibility lookup")
            try:
                return int(data[0]["ResponseId"])
            except (IndexError, KeyError, TypeError, ValueError) as exc:
                raise ApiError("eligibility lookup returned no response id", response.status_code, response.text) from exc

        return await self._lookup("response_id", call)

    async def locations(self) -> List[Location]:
        """Offices near the configured zip code, closer than ``miles``."""

        async def call() -> List[Location]:
            payload = {
                "CityName": "",
                "PreferredDay": self._settings.preferred_days,
                "TypeId": self._settings.type_id,
                "ZipCode": self._settings.zip_code,
            }
            response = await self._transport.send("/api/AvailableLocation/", "POST", payload)
            found = [
                Location(id=int(item["Id"]), name=str(item["Name"]), distance=float(item["Distance"]))
                for item in self._decode(response, "location search") or []
            ]
            return [location for location in found if location.distance < self._settings.miles]

        return await self._lookup("locations", call)

    async def location_dates(self, location: Location) -> List[AvailabilityWindow]:
        """Availability windows for one location, in server order."""
        payload = {
            "LocationId": location.id,
            "PreferredDay": self._settings.preferred_days,
            "SameDay": self._settings.same_day,
            "StartDate": None,
            "TypeId": self._settings.type_id,
        }
        response = await self._transport.send("/api/AvailableLocationDates", "POST", payload)
        data = self._decode(response, f"date search for {location.name}")

        windows: List[AvailabilityWindow] = []
        for item in data.get("LocationAvailabilityDates") or []:
            day = parse_timestamp(item.get("AvailabilityDate"))
            if day is None:
                continue
            slots = tuple(
                TimeSlot(
                    slot_id=int(slot["SlotId"]),
                    start=parse_timestamp(slot.get("StartDateTime")) or day,
                    start_raw=str(slot.get("StartDateTime", "")),
                    formatted=str(slot.get("FormattedStartDateTime", "")),
                    duration=int(slot.get("Duration") or 0),
                )
                for slot in item.get("AvailableTimeSlots") or []
            )
            windows.append(AvailabilityWindow(date=day, slots=slots))
        return windows

    async def hold_slot(self, slot: TimeSlot) -> None:
        """Place a provisional hold; raises ApiSoftFailure when the slot is gone."""
        payload = {**self._slot_identity(), "SlotId": slot.slot_id}
        response = await self._transport.send("/api/HoldSlot", "POST", payload)
        try:
            held = response.ok and response.json().get("SlotHeldSuccessfully") is True
        except (ValueError, AttributeError):
            held = False
        if not held:
            raise ApiSoftFailure(f"Slot {slot.slot_id} could not be held ({response.status_code}): {response.text}")

    async def book_slot(self, slot: TimeSlot, location: Location, response_id: int) -> str:
        """Confirm a held slot and return the confirmation number."""
        settings = self._settings
        payload = {
            **self._slot_identity(),
            "AdaRequired": False,
            "BookingDateTime": slot.start_raw,
            "BookingDuration": slot.duration,
            "CardNumber": "",
            "CellPhone": settings.phone_number or "",
            "Email": settings.email,
            "HomePhone": "",
            "ResponseId": response_id,
            "SendSms": bool(settings.phone_number),
            "ServiceTypeId": settings.type_id,
            "SiteId": location.id,
            "SpanishLanguage": "N",
        }
        response = await self._transport.send("/api/NewBooking", "POST", payload)
        if not response.ok:
            raise ApiSoftFailure(f"Booking rejected ({response.status_code}): {response.text}")
        try:
            return str(response.json()["Booking"]["ConfirmationNumber"])
        except (ValueError, KeyError, TypeError) as exc:
            raise ApiSoftFailure(f"Booking response had no confirmation number: {response.text}") from exc

    async def cancel_booking(self, confirmation_number: str) -> None:
        """Cancel an existing booking; raises ApiError when the API refuses."""
        payload = {**self._identity(), "ConfirmationNumber": confirmation_number}
        response = await self._transport.send("/api/CancelBooking", "POST", payload)
        if not response.ok:
            raise ApiError(
                f"Cancelling booking {confirmation_number} failed with {response.status_code}",
                response.status_code,
                response.text,
            )
