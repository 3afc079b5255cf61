"""Data models for the notifications module."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class ChannelKind(str, Enum):
    """Closed set of delivery channel kinds."""

    EMAIL = "email"
    DISCORD = "discord"
    GOTIFY = "gotify"
    TELEGRAM = "telegram"
    SLACK = "slack"


class EventCategory(str, Enum):
    """Event categories a subscription can opt into."""

    BUILD_ERROR = "app_build_error"
    DEPLOY = "app_deploy"
    DATABASE_BACKUP = "database_backup"
    DOCKER_CLEANUP = "docker_cleanup"


@dataclass(frozen=True)
class EventPayload:
    """A build failure to notify subscribers about.

    Attributes:
        project_name: Project owning the application.
        application_name: Application whose build failed.
        application_type: Kind of application (e.g. "application", "compose").
        error_message: Build error output. May be empty, may span lines.
        build_link: Deep link to the build logs. Passed through unvalidated.
        owner_id: Account owning the project, used to resolve subscriptions.
        timestamp: Dispatch time. Set once by the dispatcher when absent.
    """

    project_name: str
    application_name: str
    application_type: str
    error_message: str
    build_link: str
    owner_id: str
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        for name in (
            "project_name",
            "application_name",
            "application_type",
            "error_message",
            "build_link",
            "owner_id",
        ):
            if getattr(self, name) is None:
                raise ValueError(f"EventPayload.{name} is required")

    def stamped(self, moment: datetime | None = None) -> EventPayload:
        """Return a copy carrying a timestamp, keeping an existing one."""
        if self.timestamp is not None:
            return self
        return dataclasses.replace(self, timestamp=moment or datetime.now(UTC))


@dataclass(frozen=True)
class ChannelConfig:
    """Fields shared by every channel configuration.

    Attributes:
        decoration: Prefix field labels with emoji/markup glyphs.
    """

    decoration: bool = True


@dataclass(frozen=True)
class EmailConfig(ChannelConfig):
    """SMTP delivery settings for one subscription."""

    smtp_server: str = ""
    smtp_port: int = 587
    username: str = ""
    password: str = ""
    from_address: str = ""
    to_addresses: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiscordConfig(ChannelConfig):
    """Discord webhook target."""

    webhook_url: str = ""


@dataclass(frozen=True)
class GotifyConfig(ChannelConfig):
    """Gotify server and application token."""

    server_url: str = ""
    app_token: str = ""
    priority: int = 5


@dataclass(frozen=True)
class TelegramConfig(ChannelConfig):
    """Telegram bot credentials and target chat."""

    bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class SlackConfig(ChannelConfig):
    """Slack incoming webhook and channel."""

    webhook_url: str = ""
    channel: str = ""


@dataclass(frozen=True)
class SubscriptionRecord:
    """One account's notification subscription.

    Holds zero or one configuration per channel kind. A record with no
    configurations is valid and produces no deliveries.
    """

    subscription_id: str
    owner_id: str
    categories: frozenset[EventCategory] = frozenset({EventCategory.BUILD_ERROR})
    email: EmailConfig | None = None
    discord: DiscordConfig | None = None
    gotify: GotifyConfig | None = None
    telegram: TelegramConfig | None = None
    slack: SlackConfig | None = None

    def configs(self) -> Iterator[tuple[ChannelKind, ChannelConfig]]:
        """Yield (kind, config) for every configured channel."""
        for kind in ChannelKind:
            config = getattr(self, kind.value)
            if config is not None:
                yield kind, config


@dataclass(frozen=True)
class GotifyMessage:
    """Gotify push message."""

    title: str
    body: str
    priority: int = 5


@dataclass(frozen=True)
class EmailMessage:
    """Email subject plus the values handed to the template renderer."""

    subject: str
    template: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of one (subscription, channel) send."""

    subscription_id: str
    channel: ChannelKind
    success: bool
    error: str | None = None
    error_type: str | None = None


@dataclass
class DispatchReport:
    """Outcomes of one dispatch call."""

    outcomes: list[DispatchOutcome] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failure_count(self) -> int:
        return len(self.outcomes) - self.success_count

    @property
    def all_succeeded(self) -> bool:
        """Return True if at least one send happened and none failed."""
        return self.failure_count == 0 and self.success_count > 0

    def failures(self) -> list[DispatchOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self) -> Iterator[DispatchOutcome]:
        return iter(self.outcomes)
