"""Human-readable messages for status updates and the final booking."""

from __future__ import annotations

from typing import List, Sequence, Union

from .config import Settings
from .models import Candidate, PollRound, ProbeResult

DATE_FORMAT = "%m/%d/%Y"


def build_round_summary(poll_round: PollRound, results: Sequence[Union[ProbeResult, BaseException]]) -> str:
    """Summarise one round: per-outcome counts and the soonest open date seen."""

    probes = [result for result in results if isinstance(result, ProbeResult)]
    failed = len(results) - len(probes)
    with_candidate = sum(1 for probe in probes if probe.candidate is not None)
    without = len(probes) - with_candidate

    lines: List[str] = [
        f"Round #{poll_round.number} | {poll_round.started_at.strftime('%m/%d/%Y %I:%M:%S %p')}",
        f"Checked {len(results)} location(s): {with_candidate} with a slot in window, "
        f"{without} without, {failed} failed.",
    ]

    dated = [probe for probe in probes if probe.next_available is not None]
    if dated:
        best = min(dated, key=lambda probe: probe.next_available)
        lines.append(
            f"Soonest availability: {best.location.name} on {best.next_available.strftime(DATE_FORMAT)}"
        )
    else:
        lines.append("Soonest availability: none found")
    return "\n".join(lines)


def build_starting_message(settings: Settings) -> str:
    lines = [f"DPS scheduler starting for {settings.full_name}."]
    lines.append(f"Searching {settings.day_window.describe()} around {settings.zip_code} ({settings.miles:g} miles).")
    if settings.dry_run:
        lines.append("Dry-run mode: no booking will be made.")
    return "\n".join(lines)


def build_booking_message(settings: Settings, candidate: Candidate, confirmation_number: str) -> str:
    return "\n".join(
        [
            f"Booking for {settings.full_name} has been booked.",
            f"Confirmation Number: {confirmation_number}",
            f"Location: {candidate.location.name} DPS",
            f"Time: {candidate.slot.formatted}",
            f"Appointment URL: {settings.appointment_url(confirmation_number)}",
        ]
    )
