"""HTTP transport for the DPS scheduling API."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from .config import Settings
from .errors import TransportError

LOGGER = structlog.get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; rv:104.0) Gecko/20100101 Firefox/104.0"


def browser_headers(site_url: str) -> dict[str, str]:
    """Headers the public API expects from its own web client."""
    origin = site_url.rstrip("/")
    return {
        "Content-Type": "application/json;charset=UTF-8",
        "Origin": origin,
        "Referer": f"{origin}/",
        "User-Agent": USER_AGENT,
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.5",
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-site",
        "Pragma": "no-cache",
        "Cache-Control": "no-cache",
    }


@dataclass(frozen=True)
class TransportResponse:
    """Raw status code and body of a completed request."""

    status_code: int
    body: bytes

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


class SchedulerTransport:
    """Sends JSON requests with fixed browser headers; never retries."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self._settings = settings
        self._base_url = str(settings.api_base_url).rstrip("/")
        self._headers = browser_headers(str(settings.site_url))
        self._owns_client = client is None
        # Timeouts are enforced per request in send(), not by the client.
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(None))

    async def __aenter__(self) -> "SchedulerTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(self, path: str, method: str = "POST", body: Any = None) -> TransportResponse:
        """Issue a request and return its status and raw body.

        ``headers_timeout_seconds`` bounds the wait for the response headers.
        Reading the body is bounded only when ``body_timeout_seconds`` is set.
        """
        url = f"{self._base_url}{path}"
        content = json.dumps(body) if body is not None else None
        request = self._client.build_request(method, url, headers=self._headers, content=content)

        LOGGER.debug("transport.request", method=method, path=path)
        try:
            response = await asyncio.wait_for(
                self._client.send(request, stream=True),
                timeout=self._settings.headers_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Timed out waiting for response headers from {path}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request to {path} failed: {exc}") from exc

        try:
            if self._settings.body_timeout_seconds is not None:
                raw = await asyncio.wait_for(response.aread(), timeout=self._settings.body_timeout_seconds)
            else:
                raw = await response.aread()
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Timed out reading response body from {path}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Reading response from {path} failed: {exc}") from exc
        finally:
            await response.aclose()

        LOGGER.debug("transport.response", path=path, status_code=response.status_code)
        return TransportResponse(status_code=response.status_code, body=raw)
