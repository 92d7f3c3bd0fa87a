"""Exception types and process exit codes."""

from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    """Exit codes reserved for each way a run can end."""

    BOOKED = 0
    UNEXPECTED = 1
    SETTINGS = 2
    DRY_RUN = 3
    EXISTING_BOOKING = 4
    NOTIFIER_SETUP = 5
    CANCEL_FAILED = 6
    STARTUP_FAILED = 7


class SchedulerError(Exception):
    """Base exception for the scheduler."""


class TransportError(SchedulerError):
    """Network-level failure talking to a remote service."""


class ApiError(SchedulerError):
    """The scheduling API answered with a non-success response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ApiSoftFailure(SchedulerError):
    """The scheduling API rejected a hold or booking attempt."""


class NotifierError(SchedulerError):
    """A notification backend failed to deliver a message."""


class RunTerminated(SchedulerError):
    """Terminal outcome of a run, converted to a process exit by the CLI."""

    def __init__(self, exit_code: ExitCode, message: str):
        self.exit_code = exit_code
        self.message = message
        super().__init__(f"[{exit_code.name}] {message}")

    @property
    def succeeded(self) -> bool:
        return self.exit_code is ExitCode.BOOKED
