"""Notification layer - build failure delivery to subscriber channels."""

from build_notifier.notifications.channels import (
    DiscordChannel,
    EmailChannel,
    GotifyChannel,
    SlackChannel,
    TelegramChannel,
)
from build_notifier.notifications.dispatcher import (
    ChannelRoute,
    NotificationDispatcher,
    create_dispatcher,
    default_routes,
)
from build_notifier.notifications.errors import (
    DeliveryError,
    FormatterError,
    NotificationError,
    RenderDegradation,
)
from build_notifier.notifications.models import (
    ChannelConfig,
    ChannelKind,
    DiscordConfig,
    DispatchOutcome,
    DispatchReport,
    EmailConfig,
    EventCategory,
    EventPayload,
    GotifyConfig,
    SlackConfig,
    SubscriptionRecord,
    TelegramConfig,
)
from build_notifier.notifications.subscriptions import (
    InMemorySubscriptionResolver,
    SubscriptionResolver,
)

__all__ = [
    "ChannelConfig",
    "ChannelKind",
    "ChannelRoute",
    "DeliveryError",
    "DiscordChannel",
    "DiscordConfig",
    "DispatchOutcome",
    "DispatchReport",
    "EmailChannel",
    "EmailConfig",
    "EventCategory",
    "EventPayload",
    "FormatterError",
    "GotifyChannel",
    "GotifyConfig",
    "InMemorySubscriptionResolver",
    "NotificationDispatcher",
    "NotificationError",
    "RenderDegradation",
    "SlackChannel",
    "SlackConfig",
    "SubscriptionRecord",
    "SubscriptionResolver",
    "TelegramChannel",
    "TelegramConfig",
    "create_dispatcher",
    "default_routes",
]
