"""Slack incoming webhook channel implementation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from build_notifier.notifications.channels.base import WebhookSender

if TYPE_CHECKING:
    from build_notifier.notifications.models import SlackConfig


class SlackChannel(WebhookSender):
    """Slack incoming webhook channel."""

    name = "slack"

    async def send(self, config: SlackConfig, message: dict[str, Any]) -> None:
        """Post an attachment payload to the Slack webhook.

        Raises:
            DeliveryError: If delivery failed after all retries.
        """
        await self._post(config.webhook_url, message)
