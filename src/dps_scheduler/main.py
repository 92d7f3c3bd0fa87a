"""Entry point for the DPS scheduler."""

from __future__ import annotations

import asyncio
import logging
import sys

import structlog
from pydantic import ValidationError

from .config import Settings
from .errors import ExitCode, RunTerminated
from .orchestrator import run


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


def finish(outcome: RunTerminated) -> int:
    """Log a terminal outcome and return its exit code."""
    if outcome.succeeded:
        LOGGER.info("run.finished", outcome=outcome.exit_code.name, detail=outcome.message)
    else:
        LOGGER.error("run.finished", outcome=outcome.exit_code.name, detail=outcome.message)
    return int(outcome.exit_code)


def cli() -> None:
    """Console script entrypoint."""
    configure_logging()

    try:
        settings = Settings()
    except ValidationError as exc:
        LOGGER.error("settings.error", error=str(exc))
        raise SystemExit(int(ExitCode.SETTINGS)) from exc

    LOGGER.info("scheduler.starting", dry_run=settings.dry_run, notifier=settings.notifier)
    try:
        asyncio.run(run(settings))
    except RunTerminated as outcome:
        raise SystemExit(finish(outcome)) from None
    except KeyboardInterrupt:
        LOGGER.warning("run.interrupted")
        raise SystemExit(130) from None
    except Exception as exc:  # pragma: no cover - top level
        LOGGER.exception("run.failed", error=str(exc))
        raise SystemExit(int(ExitCode.UNEXPECTED)) from exc
    # run() only ends by raising RunTerminated.
    raise SystemExit(int(ExitCode.UNEXPECTED))  # pragma: no cover


if __name__ == "__main__":  # pragma: no cover
    cli()
