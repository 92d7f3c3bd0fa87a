"""Notification backends and their selection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from .config import Settings
from .errors import NotifierError

LOGGER = structlog.get_logger(__name__)


class Notifier(ABC):
    """Posts status updates to an external channel."""

    @abstractmethod
    async def report(self, message: str, important: bool = False) -> Optional[int]:
        """Deliver ``message``; returns the message reference when the backend has one.

        Raises:
            NotifierError: If the backend could not deliver the message.
        """
        ...


class NullNotifier(Notifier):
    """Used when notifications are disabled; only logs."""

    async def report(self, message: str, important: bool = False) -> Optional[int]:
        LOGGER.debug("notifier.disabled", important=important)
        return None


class WebhookNotifier(Notifier):
    """Fire-and-forget iMessage/SMS relay (BlueBubbles HTTP API).

    The relay cannot edit messages, so after the first message only
    important ones are delivered.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self._settings = settings
        self._client = client
        self._sent_any = False

    async def report(self, message: str, important: bool = False) -> Optional[int]:
        if self._sent_any and not important:
            LOGGER.debug("webhook.skipped", reason="routine status update")
            return None

        settings = self._settings
        payload = {
            "chatGuid": f"{settings.webhook_phone_number_type};-;{settings.webhook_phone_number}",
            "tempGuid": "",
            "message": message,
            "method": settings.webhook_send_method,
            "subject": "",
            "effectId": "",
            "selectedMessageGuid": "",
        }
        url = f"{str(settings.webhook_url).rstrip('/')}/api/v1/message/text"
        params = {"password": settings.webhook_password.get_secret_value()}

        LOGGER.info("webhook.send.start", important=important)
        try:
            response = await self._client.post(url, params=params, json=payload)
        except httpx.HTTPError as exc:
            raise NotifierError(f"Webhook send failed: {exc}") from exc
        if response.status_code != 200:
            LOGGER.error("webhook.send.failed", status_code=response.status_code, body=response.text)
            raise NotifierError(f"Webhook send failed with {response.status_code}: {response.text}")
        LOGGER.info("webhook.send.success")
        self._sent_any = True
        return None


def create_notifier(settings: Settings, client: httpx.AsyncClient) -> Notifier:
    """Select the notification backend named by ``settings.notifier``."""
    if settings.notifier == "telegram":
        from .telegram import TelegramNotifier

        return TelegramNotifier(settings, client)
    if settings.notifier == "webhook":
        return WebhookNotifier(settings, client)
    return NullNotifier()
