"""Gotify push channel implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from build_notifier.notifications.channels.base import WebhookSender

if TYPE_CHECKING:
    from build_notifier.notifications.models import GotifyConfig, GotifyMessage


class GotifyChannel(WebhookSender):
    """Gotify server channel.

    Pushes plain text messages to ``{server_url}/message`` authenticated
    with the application token.
    """

    name = "gotify"

    async def send(self, config: GotifyConfig, message: GotifyMessage) -> None:
        """Push a message to the Gotify server.

        Raises:
            DeliveryError: If delivery failed after all retries.
        """
        url = f"{config.server_url.rstrip('/')}/message"
        payload = {
            "title": message.title,
            "message": message.body,
            "priority": message.priority,
            "extras": {"client::display": {"contentType": "text/plain"}},
        }
        await self._post(url, payload, headers={"X-Gotify-Key": config.app_token})
