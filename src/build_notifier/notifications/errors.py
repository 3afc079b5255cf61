"""Exceptions raised while formatting, rendering and delivering notifications."""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for notification errors."""


class FormatterError(NotificationError):
    """A formatter could not build a message from the event it was given."""


class DeliveryError(NotificationError):
    """A sender failed to deliver a message (network, auth, rate limit)."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel
        self.reason = message


class RenderDegradation(NotificationError):
    """The email template could not be rendered.

    Senders catch this and deliver with an empty body instead of failing.
    """
