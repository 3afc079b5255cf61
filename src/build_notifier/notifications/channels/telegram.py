"""Telegram Bot API channel implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from build_notifier.notifications.channels.base import WebhookSender

if TYPE_CHECKING:
    from build_notifier.notifications.models import TelegramConfig

TELEGRAM_API_BASE = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramChannel(WebhookSender):
    """Telegram Bot API channel.

    Sends HTML-formatted messages through ``sendMessage``. The Bot API
    reports failures in the body (``ok: false``) rather than only through
    the status code.
    """

    name = "telegram"

    def _is_success(self, response: httpx.Response) -> bool:
        try:
            result = response.json()
        except ValueError:
            return False
        return isinstance(result, dict) and bool(result.get("ok"))

    def _retry_after(self, response: httpx.Response) -> float | None:
        try:
            result = response.json()
        except ValueError:
            return None
        if not isinstance(result, dict) or result.get("error_code") != 429:
            return None
        parameters = result.get("parameters")
        if not isinstance(parameters, dict):
            return 1.0
        return float(parameters.get("retry_after", 1))

    async def send(self, config: TelegramConfig, message: str) -> None:
        """Send an HTML message to the configured chat.

        Raises:
            DeliveryError: If delivery failed after all retries.
        """
        payload = {
            "chat_id": config.chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        await self._post(TELEGRAM_API_BASE.format(token=config.bot_token), payload)
