"""Tests for the notification dispatcher."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from build_notifier.config import Settings
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
from build_notifier.notifications.errors import DeliveryError, FormatterError
from build_notifier.notifications.formatter import (
    build_discord_embed,
    build_email_message,
    build_gotify_message,
    build_slack_message,
    build_telegram_message,
)
from build_notifier.notifications.models import (
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
from build_notifier.notifications.subscriptions import InMemorySubscriptionResolver

# ============================================================================
# Fixtures
# ============================================================================

FORMATTERS = {
    ChannelKind.EMAIL: build_email_message,
    ChannelKind.DISCORD: build_discord_embed,
    ChannelKind.GOTIFY: build_gotify_message,
    ChannelKind.TELEGRAM: build_telegram_message,
    ChannelKind.SLACK: build_slack_message,
}


def make_sender(name: str) -> MagicMock:
    """Create a mock sender that succeeds."""
    sender = MagicMock()
    sender.name = name
    sender.send = AsyncMock(return_value=None)
    return sender


@pytest.fixture
def senders() -> dict[ChannelKind, MagicMock]:
    """Create one mock sender per channel kind."""
    return {kind: make_sender(kind.value) for kind in ChannelKind}


@pytest.fixture
def dispatcher(senders: dict[ChannelKind, MagicMock]) -> NotificationDispatcher:
    """Create a dispatcher routing every kind to its mock sender."""
    routes = {
        kind: ChannelRoute(kind, FORMATTERS[kind], senders[kind]) for kind in ChannelKind
    }
    return NotificationDispatcher(routes)


@pytest.fixture
def event() -> EventPayload:
    """Create an unstamped build failure event."""
    return EventPayload(
        project_name="Acme",
        application_name="api",
        application_type="docker",
        error_message="exit code 1",
        build_link="https://ci/x/42",
        owner_id="u1",
    )


@pytest.fixture
def full_subscription() -> SubscriptionRecord:
    """Create a subscription with all five channels configured."""
    return SubscriptionRecord(
        subscription_id="sub-all",
        owner_id="u1",
        email=EmailConfig(
            smtp_server="smtp.example.com",
            from_address="ci@example.com",
            to_addresses=("dev@example.com",),
        ),
        discord=DiscordConfig(webhook_url="https://discord.com/api/webhooks/1/abc"),
        gotify=GotifyConfig(server_url="https://gotify.example.com", app_token="tok"),
        telegram=TelegramConfig(bot_token="123:ABC", chat_id="-100"),
        slack=SlackConfig(webhook_url="https://hooks.slack.com/x", channel="#builds"),
    )


# ============================================================================
# DispatchReport Tests
# ============================================================================


class TestDispatchReport:
    """Tests for dispatch report aggregation."""

    def test_counts(self) -> None:
        """Test success and failure counts."""
        report = DispatchReport(
            outcomes=[
                DispatchOutcome("s1", ChannelKind.DISCORD, success=True),
                DispatchOutcome("s1", ChannelKind.SLACK, success=False, error="boom"),
            ]
        )
        assert report.success_count == 1
        assert report.failure_count == 1
        assert report.all_succeeded is False
        assert [o.channel for o in report.failures()] == [ChannelKind.SLACK]
        assert len(report) == 2

    def test_empty(self) -> None:
        """Test an empty report."""
        report = DispatchReport()
        assert report.all_succeeded is False
        assert list(report) == []


# ============================================================================
# NotificationDispatcher Tests
# ============================================================================


class TestNotificationDispatcher:
    """Tests for notification dispatch."""

    def test_init_rejects_zero_concurrency(self) -> None:
        """Test concurrency must be positive."""
        with pytest.raises(ValueError, match="max_concurrency"):
            NotificationDispatcher({}, max_concurrency=0)

    @pytest.mark.asyncio
    async def test_no_subscriptions(
        self,
        dispatcher: NotificationDispatcher,
        event: EventPayload,
    ) -> None:
        """Test dispatching to nobody returns an empty report."""
        report = await dispatcher.dispatch(event, [])
        assert report.outcomes == []

    @pytest.mark.asyncio
    async def test_unconfigured_subscriptions_are_skipped(
        self,
        dispatcher: NotificationDispatcher,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
    ) -> None:
        """Test records with every channel absent produce no sends."""
        subs = [SubscriptionRecord("a", "u1"), SubscriptionRecord("b", "u1")]

        report = await dispatcher.dispatch(event, subs)

        assert report.outcomes == []
        for sender in senders.values():
            sender.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_channel(
        self,
        dispatcher: NotificationDispatcher,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
    ) -> None:
        """Test only the configured kind's sender is invoked."""
        sub = SubscriptionRecord(
            "sub-tg",
            "u1",
            telegram=TelegramConfig(bot_token="123:ABC", chat_id="-100", decoration=True),
        )

        report = await dispatcher.dispatch(event, [sub])

        assert report.outcomes == [DispatchOutcome("sub-tg", ChannelKind.TELEGRAM, success=True)]
        senders[ChannelKind.TELEGRAM].send.assert_awaited_once()
        config, text = senders[ChannelKind.TELEGRAM].send.call_args.args
        assert config is sub.telegram
        for value in ("Acme", "api", "docker", "exit code 1", "https://ci/x/42"):
            assert value in text
        assert "<pre>exit code 1</pre>" in text
        for kind, sender in senders.items():
            if kind is not ChannelKind.TELEGRAM:
                sender.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_all_channels_succeed(
        self,
        dispatcher: NotificationDispatcher,
        event: EventPayload,
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test every configured channel gets one successful outcome."""
        report = await dispatcher.dispatch(event, [full_subscription])

        assert len(report) == 5
        assert report.all_succeeded is True
        assert {o.channel for o in report} == set(ChannelKind)

    @pytest.mark.asyncio
    async def test_failure_isolation(
        self,
        dispatcher: NotificationDispatcher,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test one failing sender does not stop the other four."""
        senders[ChannelKind.DISCORD].send.side_effect = DeliveryError("discord", "HTTP 404")

        report = await dispatcher.dispatch(event, [full_subscription])

        assert len(report) == 5
        assert report.success_count == 4
        assert report.failure_count == 1
        failure = report.failures()[0]
        assert failure.channel is ChannelKind.DISCORD
        assert failure.error_type == "DeliveryError"
        assert "HTTP 404" in failure.error
        for sender in senders.values():
            sender.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_sender_exception_is_captured(
        self,
        dispatcher: NotificationDispatcher,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test non-delivery exceptions become failure outcomes."""
        senders[ChannelKind.SLACK].send.side_effect = RuntimeError("socket closed")

        report = await dispatcher.dispatch(event, [full_subscription])

        assert report.failure_count == 1
        assert report.failures()[0].error_type == "RuntimeError"

    @pytest.mark.asyncio
    async def test_all_sends_fail_without_raising(
        self,
        dispatcher: NotificationDispatcher,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test total failure is reported, not raised."""
        for kind, sender in senders.items():
            sender.send.side_effect = DeliveryError(kind.value, "down")

        report = await dispatcher.dispatch(event, [full_subscription, full_subscription])

        assert len(report) == 10
        assert report.success_count == 0

    @pytest.mark.asyncio
    async def test_formatter_failure_is_channel_local(
        self,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test a formatter error fails only its own channel."""

        def broken(_event: EventPayload, _config: GotifyConfig) -> None:
            raise FormatterError("bad input")

        routes = {
            kind: ChannelRoute(kind, FORMATTERS[kind], senders[kind]) for kind in ChannelKind
        }
        routes[ChannelKind.GOTIFY] = ChannelRoute(
            ChannelKind.GOTIFY, broken, senders[ChannelKind.GOTIFY]
        )
        dispatcher = NotificationDispatcher(routes)

        report = await dispatcher.dispatch(event, [full_subscription])

        assert report.success_count == 4
        assert report.failures()[0].error_type == "FormatterError"
        senders[ChannelKind.GOTIFY].send.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_route(
        self,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test kinds without a route fail without blocking the rest."""
        routes = {
            ChannelKind.SLACK: ChannelRoute(
                ChannelKind.SLACK, build_slack_message, senders[ChannelKind.SLACK]
            )
        }
        dispatcher = NotificationDispatcher(routes)

        report = await dispatcher.dispatch(event, [full_subscription])

        assert report.success_count == 1
        assert report.failure_count == 4
        assert {o.error_type for o in report.failures()} == {"MissingRoute"}

    @pytest.mark.asyncio
    async def test_single_timestamp_per_dispatch(
        self,
        dispatcher: NotificationDispatcher,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test every message in one dispatch carries the same moment."""
        report = await dispatcher.dispatch(event, [full_subscription])

        embed = senders[ChannelKind.DISCORD].send.call_args.args[1]
        email = senders[ChannelKind.EMAIL].send.call_args.args[1]
        assert embed["timestamp"] == report.timestamp.isoformat()
        assert email.context["date"] == report.timestamp.strftime("%Y-%m-%d %H:%M:%S %Z")

    @pytest.mark.asyncio
    async def test_existing_timestamp_is_kept(
        self,
        dispatcher: NotificationDispatcher,
        senders: dict[ChannelKind, MagicMock],
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test a pre-stamped event is not re-stamped."""
        moment = datetime(2024, 3, 1, 14, 5, 9, tzinfo=UTC)
        event = EventPayload("Acme", "api", "docker", "", "https://ci/x/42", "u1", moment)

        report = await dispatcher.dispatch(event, [full_subscription])

        assert report.timestamp == moment
        embed = senders[ChannelKind.DISCORD].send.call_args.args[1]
        assert embed["timestamp"] == moment.isoformat()

    @pytest.mark.asyncio
    async def test_inputs_not_mutated(
        self,
        dispatcher: NotificationDispatcher,
        event: EventPayload,
        full_subscription: SubscriptionRecord,
    ) -> None:
        """Test the caller's event keeps its missing timestamp."""
        subs = [full_subscription]

        await dispatcher.dispatch(event, subs)

        assert event.timestamp is None
        assert subs == [full_subscription]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, event: EventPayload) -> None:
        """Test no more than max_concurrency sends run at once."""
        in_flight = 0
        peak = 0

        async def slow_send(_config: object, _message: object) -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        sender = make_sender("discord")
        sender.send = AsyncMock(side_effect=slow_send)
        routes = {
            ChannelKind.DISCORD: ChannelRoute(ChannelKind.DISCORD, build_discord_embed, sender)
        }
        dispatcher = NotificationDispatcher(routes, max_concurrency=2)
        subs = [
            SubscriptionRecord(f"s{i}", "u1", discord=DiscordConfig(webhook_url="https://d"))
            for i in range(6)
        ]

        report = await dispatcher.dispatch(event, subs)

        assert report.success_count == 6
        assert peak == 2

    @pytest.mark.asyncio
    async def test_slow_send_does_not_serialize_others(self, event: EventPayload) -> None:
        """Test sends run concurrently rather than one after another."""
        started: list[str] = []
        release = asyncio.Event()

        async def blocking_send(config: DiscordConfig, _message: object) -> None:
            started.append(config.webhook_url)
            if config.webhook_url == "https://slow":
                await release.wait()

        async def fast_send(_config: object, _message: object) -> None:
            release.set()

        discord = make_sender("discord")
        discord.send = AsyncMock(side_effect=blocking_send)
        slack = make_sender("slack")
        slack.send = AsyncMock(side_effect=fast_send)
        routes = {
            ChannelKind.DISCORD: ChannelRoute(ChannelKind.DISCORD, build_discord_embed, discord),
            ChannelKind.SLACK: ChannelRoute(ChannelKind.SLACK, build_slack_message, slack),
        }
        sub = SubscriptionRecord(
            "s1",
            "u1",
            discord=DiscordConfig(webhook_url="https://slow"),
            slack=SlackConfig(webhook_url="https://hooks.slack.com/x"),
        )

        report = await asyncio.wait_for(
            NotificationDispatcher(routes).dispatch(event, [sub]), timeout=1.0
        )

        assert report.all_succeeded is True

    @pytest.mark.asyncio
    async def test_notify_uses_resolver(
        self,
        dispatcher: NotificationDispatcher,
        senders: dict[ChannelKind, MagicMock],
        event: EventPayload,
    ) -> None:
        """Test notify dispatches only to the owner's build-error subscriptions."""
        resolver = InMemorySubscriptionResolver(
            [
                SubscriptionRecord("mine", "u1", slack=SlackConfig(webhook_url="https://s")),
                SubscriptionRecord("other", "u2", slack=SlackConfig(webhook_url="https://o")),
                SubscriptionRecord(
                    "deploys",
                    "u1",
                    categories=frozenset({EventCategory.DEPLOY}),
                    slack=SlackConfig(webhook_url="https://d"),
                ),
            ]
        )

        report = await dispatcher.notify(event, resolver)

        assert [o.subscription_id for o in report] == ["mine"]
        senders[ChannelKind.SLACK].send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_notify_propagates_resolver_errors(
        self,
        dispatcher: NotificationDispatcher,
        event: EventPayload,
    ) -> None:
        """Test lookup failures are not swallowed."""
        resolver = MagicMock()
        resolver.find_subscriptions = AsyncMock(side_effect=ConnectionError("db down"))

        with pytest.raises(ConnectionError):
            await dispatcher.notify(event, resolver)


# ============================================================================
# Wiring Tests
# ============================================================================


class TestWiring:
    """Tests for default routes and dispatcher construction."""

    def test_default_routes_cover_every_kind(self) -> None:
        """Test one route per channel kind with the shipped senders."""
        routes = default_routes(max_retries=5, http_timeout=3.0)

        assert set(routes) == set(ChannelKind)
        assert isinstance(routes[ChannelKind.EMAIL].sender, EmailChannel)
        assert isinstance(routes[ChannelKind.DISCORD].sender, DiscordChannel)
        assert isinstance(routes[ChannelKind.GOTIFY].sender, GotifyChannel)
        assert isinstance(routes[ChannelKind.TELEGRAM].sender, TelegramChannel)
        assert isinstance(routes[ChannelKind.SLACK].sender, SlackChannel)
        assert routes[ChannelKind.DISCORD].sender.max_retries == 5
        assert routes[ChannelKind.SLACK].sender.timeout == 3.0

    def test_create_dispatcher_from_settings(self) -> None:
        """Test settings flow into routes and concurrency."""
        settings = Settings(NOTIFIER_APP_NAME="Forge", NOTIFIER_MAX_CONCURRENT_SENDS=4)

        dispatcher = create_dispatcher(settings)

        assert dispatcher.max_concurrency == 4
        moment = datetime(2024, 3, 1, tzinfo=UTC)
        event = EventPayload("Acme", "api", "docker", "", "https://ci", "u1", moment)
        embed = dispatcher.routes[ChannelKind.DISCORD].formatter(event, DiscordConfig())
        assert embed["footer"] == {"text": "Forge Build Notification"}
        email = dispatcher.routes[ChannelKind.EMAIL].formatter(event, EmailConfig())
        assert email.subject == "Build failed for forge"

    def test_create_dispatcher_logs_settings_summary(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test the effective settings are logged at DEBUG when building."""
        settings = Settings(NOTIFIER_APP_NAME="Forge")

        with caplog.at_level("DEBUG", logger="build_notifier.notifications.dispatcher"):
            create_dispatcher(settings)

        assert "'app_name': 'Forge'" in caplog.text
        assert "'max_retries': '3'" in caplog.text
