"""Telegram messaging backend."""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from .config import Settings
from .errors import NotifierError
from .models import StatusMessage
from .notifier import Notifier

LOGGER = structlog.get_logger(__name__)


class TelegramNotifier(Notifier):
    """Keeps one status message up to date by editing it in place.

    The first message, and every important one, is sent fresh. Routine
    updates edit the last status message; if that edit fails the reference
    is dropped and the update is sent once as a new message.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self._settings = settings
        self._client = client
        self.status = StatusMessage()

    async def report(self, message: str, important: bool = False) -> Optional[int]:
        if important or not self.status.sent:
            return await self._send(message, important)

        try:
            return await self._edit(message)
        except NotifierError as exc:
            LOGGER.warning("telegram.edit.failed", message_id=self.status.message_id, error=str(exc))
            self.status.invalidate()
            return await self._send(message, important)

    async def _send(self, text: str, important: bool) -> int:
        payload = {
            "chat_id": self._settings.telegram_chat_id,
            "text": text,
            "disable_web_page_preview": True,
            "disable_notification": not important,
        }
        LOGGER.info("telegram.send.start", important=important)
        result = await self._call("sendMessage", payload)
        try:
            message_id = int(result["message_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise NotifierError(f"Telegram sendMessage returned no message id: {result!r}") from exc
        if not important:
            self.status.message_id = message_id
        LOGGER.info("telegram.send.success", message_id=message_id)
        return message_id

    async def _edit(self, text: str) -> int:
        payload = {
            "chat_id": self._settings.telegram_chat_id,
            "message_id": self.status.message_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        await self._call("editMessageText", payload)
        LOGGER.debug("telegram.edit.success", message_id=self.status.message_id)
        return self.status.message_id

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._settings.telegram_api_endpoint}/{method}"
        try:
            response = await self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise NotifierError(f"Telegram {method} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_success and body.get("ok") is True:
            return body.get("result") or {}
        LOGGER.error("telegram.call.failed", method=method, status_code=response.status_code, body=response.text)
        raise NotifierError(f"Telegram {method} failed with {response.status_code}: {response.text}")
