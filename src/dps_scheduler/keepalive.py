"""FastAPI liveness endpoint for hosting platforms that require an open port."""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from .state import RunContext

LOGGER = structlog.get_logger(__name__)


class StatusResponse(BaseModel):
    """Response schema for the /status endpoint."""

    round: int
    paused: bool
    holding: bool
    booked: bool


def create_app(context: RunContext) -> FastAPI:
    app = FastAPI(title="DPS Scheduler", version="0.1.0")

    @app.get("/", response_class=PlainTextResponse)
    async def alive() -> str:
        return "Bot is alive!"

    @app.get("/status", response_model=StatusResponse)
    async def status() -> StatusResponse:
        return StatusResponse(
            round=context.round.number,
            paused=context.gate.paused,
            holding=context.reservation.holding,
            booked=context.reservation.booked,
        )

    return app


class KeepAliveServer:
    """Runs the liveness app inside the scheduler's event loop."""

    def __init__(self, context: RunContext, port: int, host: str = "0.0.0.0"):
        config = uvicorn.Config(create_app(context), host=host, port=port, log_level="warning")
        self._server = uvicorn.Server(config)
        self._task: Optional[asyncio.Task] = None
        self._port = port

    async def __aenter__(self) -> "KeepAliveServer":
        LOGGER.info("keepalive.start", port=self._port)
        self._task = asyncio.create_task(self._server.serve())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._task is None:
            return
        self._server.should_exit = True
        await self._task
        LOGGER.info("keepalive.stopped")
