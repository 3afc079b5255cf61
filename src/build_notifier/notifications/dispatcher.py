"""Notification dispatcher for multi-channel delivery."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from build_notifier.notifications.channels import (
    DiscordChannel,
    EmailChannel,
    GotifyChannel,
    SlackChannel,
    TelegramChannel,
)
from build_notifier.notifications.errors import DeliveryError, FormatterError
from build_notifier.notifications.formatter import (
    DEFAULT_APP_NAME,
    build_discord_embed,
    build_email_message,
    build_gotify_message,
    build_slack_message,
    build_telegram_message,
)
from build_notifier.notifications.models import (
    ChannelConfig,
    ChannelKind,
    DispatchOutcome,
    DispatchReport,
    EventCategory,
    EventPayload,
    SubscriptionRecord,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from build_notifier.config import Settings
    from build_notifier.notifications.channels import ChannelSender
    from build_notifier.notifications.renderer import EmailRenderer
    from build_notifier.notifications.subscriptions import SubscriptionResolver

logger = logging.getLogger(__name__)

Formatter = Callable[[EventPayload, Any], Any]


@dataclass(frozen=True)
class ChannelRoute:
    """Pairs a channel kind with its formatter and sender."""

    kind: ChannelKind
    formatter: Formatter
    sender: ChannelSender


def default_routes(
    *,
    app_name: str = DEFAULT_APP_NAME,
    renderer: EmailRenderer | None = None,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    http_timeout: float = 10.0,
    smtp_timeout: float = 30.0,
) -> dict[ChannelKind, ChannelRoute]:
    """Build the standard route for every channel kind."""
    http = {"max_retries": max_retries, "retry_delay": retry_delay, "timeout": http_timeout}
    routes = [
        ChannelRoute(
            ChannelKind.EMAIL,
            partial(build_email_message, app_name=app_name),
            EmailChannel(renderer, timeout=smtp_timeout),
        ),
        ChannelRoute(
            ChannelKind.DISCORD,
            partial(build_discord_embed, app_name=app_name),
            DiscordChannel(**http),
        ),
        ChannelRoute(ChannelKind.GOTIFY, build_gotify_message, GotifyChannel(**http)),
        ChannelRoute(ChannelKind.TELEGRAM, build_telegram_message, TelegramChannel(**http)),
        ChannelRoute(ChannelKind.SLACK, build_slack_message, SlackChannel(**http)),
    ]
    return {route.kind: route for route in routes}


class NotificationDispatcher:
    """Dispatcher for sending one event to every subscribed channel.

    Each (subscription, channel) pair is formatted and sent independently
    and concurrently, bounded by ``max_concurrency``. A failure in one pair
    is recorded as an outcome and never stops the others.
    """

    def __init__(
        self,
        routes: Mapping[ChannelKind, ChannelRoute],
        *,
        max_concurrency: int = 10,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            routes: Formatter and sender per channel kind.
            max_concurrency: Maximum number of sends in flight at once.
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.routes = dict(routes)
        self.max_concurrency = max_concurrency

    async def _send_one(
        self,
        event: EventPayload,
        subscription: SubscriptionRecord,
        kind: ChannelKind,
        config: ChannelConfig,
        semaphore: asyncio.Semaphore,
    ) -> DispatchOutcome:
        """Format and send to a single channel, capturing any failure."""
        sub_id = subscription.subscription_id

        def failed(error: Exception | str, error_type: str) -> DispatchOutcome:
            return DispatchOutcome(
                sub_id, kind, success=False, error=str(error), error_type=error_type
            )

        route = self.routes.get(kind)
        if route is None:
            logger.error(f"No route registered for {kind.value} (subscription {sub_id})")
            return failed(f"no route for {kind.value}", "MissingRoute")

        try:
            message = route.formatter(event, config)
        except FormatterError as e:
            logger.error(f"Formatting {kind.value} for {sub_id} failed: {e}")
            return failed(e, type(e).__name__)
        except Exception as e:
            logger.exception(f"Unexpected formatter error for {kind.value} ({sub_id}): {e}")
            return failed(e, type(e).__name__)

        async with semaphore:
            try:
                await route.sender.send(config, message)
            except DeliveryError as e:
                logger.error(f"Delivery to {kind.value} for {sub_id} failed: {e}")
                return failed(e, type(e).__name__)
            except Exception as e:
                logger.error(f"Error sending to {kind.value} for {sub_id}: {e}")
                return failed(e, type(e).__name__)

        return DispatchOutcome(sub_id, kind, success=True)

    async def dispatch(
        self,
        event: EventPayload,
        subscriptions: Sequence[SubscriptionRecord],
    ) -> DispatchReport:
        """Dispatch an event to every configured channel of every subscription.

        Args:
            event: The event to notify about. Stamped with the current time
                if it carries no timestamp yet.
            subscriptions: Subscriptions to deliver to.

        Returns:
            DispatchReport with one outcome per attempted channel.
        """
        event = event.stamped()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        tasks = [
            self._send_one(event, subscription, kind, config, semaphore)
            for subscription in subscriptions
            for kind, config in subscription.configs()
        ]

        if not tasks:
            logger.warning("No channels configured for dispatch")
            return DispatchReport(timestamp=event.timestamp)

        outcomes = await asyncio.gather(*tasks)
        report = DispatchReport(outcomes=list(outcomes), timestamp=event.timestamp)

        logger.info(f"Dispatch complete: {report.success_count}/{len(report)} succeeded")

        return report

    async def notify(
        self,
        event: EventPayload,
        resolver: SubscriptionResolver,
        category: EventCategory = EventCategory.BUILD_ERROR,
    ) -> DispatchReport:
        """Look up the owner's subscriptions for category and dispatch to them."""
        subscriptions = await resolver.find_subscriptions(category, event.owner_id)
        logger.debug(
            f"Resolved {len(subscriptions)} subscription(s) for owner {event.owner_id}"
        )
        return await self.dispatch(event, subscriptions)


def create_dispatcher(
    settings: Settings | None = None,
    *,
    renderer: EmailRenderer | None = None,
) -> NotificationDispatcher:
    """Build a dispatcher with the standard routes configured from settings."""
    if settings is None:
        from build_notifier.config import get_settings

        settings = get_settings()

    routes = default_routes(
        app_name=settings.app_name,
        renderer=renderer,
        max_retries=settings.sender.max_retries,
        retry_delay=settings.sender.retry_delay,
        http_timeout=settings.sender.http_timeout,
        smtp_timeout=settings.sender.smtp_timeout,
    )
    logger.debug(f"Creating dispatcher with settings: {settings.summary()}")
    return NotificationDispatcher(routes, max_concurrency=settings.max_concurrent_sends)
