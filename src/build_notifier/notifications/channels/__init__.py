"""Channel sender implementations for various platforms."""

from build_notifier.notifications.channels.base import ChannelSender, WebhookSender
from build_notifier.notifications.channels.discord import DiscordChannel
from build_notifier.notifications.channels.email import EmailChannel
from build_notifier.notifications.channels.gotify import GotifyChannel
from build_notifier.notifications.channels.slack import SlackChannel
from build_notifier.notifications.channels.telegram import TelegramChannel

__all__ = [
    "ChannelSender",
    "DiscordChannel",
    "EmailChannel",
    "GotifyChannel",
    "SlackChannel",
    "TelegramChannel",
    "WebhookSender",
]
