"""Discord webhook channel implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from build_notifier.notifications.channels.base import WebhookSender

if TYPE_CHECKING:
    from build_notifier.notifications.models import DiscordConfig


class DiscordChannel(WebhookSender):
    """Discord webhook channel.

    Posts one embed per message to the subscription's webhook URL.
    Discord answers 204 on success and 429 with ``retry_after`` when
    rate limited.
    """

    name = "discord"

    async def send(self, config: DiscordConfig, message: dict[str, Any]) -> None:
        """Send an embed to the Discord webhook.

        Args:
            config: Subscription's Discord configuration.
            message: Embed built by the Discord formatter.

        Raises:
            DeliveryError: If delivery failed after all retries.
        """
        await self._post(config.webhook_url, {"embeds": [message]})
