"""Build failure message formatters for each channel kind.

Every formatter is a pure function of ``(event, config)``. All time fields
derive from ``event.timestamp``, which the dispatcher sets once per dispatch,
so every message of one dispatch shows the same moment.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from build_notifier.notifications.errors import FormatterError
from build_notifier.notifications.models import (
    DiscordConfig,
    EmailConfig,
    EmailMessage,
    EventPayload,
    GotifyConfig,
    GotifyMessage,
    SlackConfig,
    TelegramConfig,
)

DEFAULT_APP_NAME = "Dokploy"
BUILD_FAILED_TEMPLATE = "build_failed.html"

# Discord embed color (decimal 15548997, #ED4245)
DISCORD_ALERT_COLOR = 0xED4245
SLACK_ALERT_COLOR = "#FF0000"

DISCORD_GLYPHS = {
    "title": ">",
    "project": "`🛠️`",
    "application": "`⚙️`",
    "type": "`❔`",
    "date": "`📅`",
    "time": "`⌚`",
    "status": "`❓`",
    "error": "`⚠️`",
    "link": "`🧷`",
}

GOTIFY_GLYPHS = {
    "title": "⚠️",
    "project": "🛠️",
    "application": "⚙️",
    "type": "❔",
    "date": "🕒",
    "error": "⚠️",
    "link": "🔗",
}

TELEGRAM_GLYPHS = {
    "title": "⚠️",
}

SLACK_GLYPHS = {
    "title": ":warning:",
}


def decorate(enabled: bool, glyph: str, label: str) -> str:
    """Prefix a label with its glyph when decoration is enabled."""
    if enabled:
        return f"{glyph} {label}"
    return label


def _require_timestamp(event: EventPayload) -> datetime:
    if event.timestamp is None:
        raise FormatterError("event has no dispatch timestamp")
    return event.timestamp


def unix_seconds(ts: datetime) -> int:
    """Whole seconds since the epoch."""
    return int(ts.timestamp())


def human_datetime(ts: datetime) -> str:
    """Human-readable date and time, e.g. ``2024-03-01 14:05:09 UTC``."""
    return ts.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def code_block(text: str) -> str:
    """Wrap text in a fixed-width markdown code block."""
    return f"```{text}```"


def build_discord_embed(
    event: EventPayload,
    config: DiscordConfig,
    *,
    app_name: str = DEFAULT_APP_NAME,
) -> dict[str, Any]:
    """Build the Discord embed for a failed build."""
    ts = _require_timestamp(event)
    unix = unix_seconds(ts)

    def label(key: str, text: str) -> str:
        return decorate(config.decoration, DISCORD_GLYPHS[key], text)

    fields: list[dict[str, Any]] = [
        {"name": label("project", "Project"), "value": event.project_name, "inline": True},
        {
            "name": label("application", "Application"),
            "value": event.application_name,
            "inline": True,
        },
        {"name": label("type", "Type"), "value": event.application_type, "inline": True},
        {"name": label("date", "Date"), "value": f"<t:{unix}:D>", "inline": True},
        {"name": label("time", "Time"), "value": f"<t:{unix}:t>", "inline": True},
        {"name": label("status", "Status"), "value": "Failed", "inline": True},
        {"name": label("error", "Error Message"), "value": code_block(event.error_message)},
        {
            "name": label("link", "Build Link"),
            "value": f"[Click here to access build link]({event.build_link})",
        },
    ]

    return {
        "title": label("title", "`⚠️` Build Failed"),
        "color": DISCORD_ALERT_COLOR,
        "fields": fields,
        "timestamp": ts.isoformat(),
        "footer": {"text": f"{app_name} Build Notification"},
    }


def build_gotify_message(event: EventPayload, config: GotifyConfig) -> GotifyMessage:
    """Build the Gotify push message for a failed build.

    The title is carried separately, as Gotify displays it on its own.
    """
    ts = _require_timestamp(event)

    def line(key: str, text: str) -> str:
        return decorate(config.decoration, GOTIFY_GLYPHS[key], text) + "\n"

    body = "".join(
        [
            line("project", f"Project: {event.project_name}"),
            line("application", f"Application: {event.application_name}"),
            line("type", f"Type: {event.application_type}"),
            line("date", f"Date: {human_datetime(ts)}"),
            line("error", f"Error:\n{event.error_message}"),
            line("link", f"Build details:\n{event.build_link}"),
        ]
    )
    return GotifyMessage(
        title=decorate(config.decoration, GOTIFY_GLYPHS["title"], "Build Failed"),
        body=body,
        priority=config.priority,
    )


def build_telegram_message(event: EventPayload, config: TelegramConfig) -> str:
    """Build the Telegram HTML message for a failed build.

    The error text goes into a <pre> block verbatim. It is not escaped.
    """
    ts = _require_timestamp(event)
    title = decorate(config.decoration, TELEGRAM_GLYPHS["title"], "Build Failed")

    lines = [
        f"<b>{title}</b>",
        "",
        f"<b>Project:</b> {event.project_name}",
        f"<b>Application:</b> {event.application_name}",
        f"<b>Type:</b> {event.application_type}",
        f"<b>Time:</b> {human_datetime(ts)}",
        "",
        "<b>Error:</b>",
        f"<pre>{event.error_message}</pre>",
        "",
        f"<b>Build Details:</b> {event.build_link}",
    ]
    return "\n".join(lines)


def build_slack_message(event: EventPayload, config: SlackConfig) -> dict[str, Any]:
    """Build the Slack attachment payload for a failed build."""
    ts = _require_timestamp(event)

    attachment = {
        "color": SLACK_ALERT_COLOR,
        "pretext": decorate(config.decoration, SLACK_GLYPHS["title"], "*Build Failed*"),
        "fields": [
            {"title": "Project", "value": event.project_name, "short": True},
            {"title": "Application", "value": event.application_name, "short": True},
            {"title": "Type", "value": event.application_type, "short": True},
            {"title": "Time", "value": human_datetime(ts), "short": True},
            {"title": "Error", "value": code_block(event.error_message), "short": False},
        ],
        "actions": [
            {
                "type": "button",
                "text": "View Build Details",
                "url": event.build_link,
            }
        ],
    }
    return {"channel": config.channel, "attachments": [attachment]}


def build_email_message(
    event: EventPayload,
    config: EmailConfig,
    *,
    app_name: str = DEFAULT_APP_NAME,
) -> EmailMessage:
    """Build the email subject and template context for a failed build.

    The body itself is produced later by the template renderer.
    """
    ts = _require_timestamp(event)
    return EmailMessage(
        subject=f"Build failed for {app_name.lower()}",
        template=BUILD_FAILED_TEMPLATE,
        context={
            "project_name": event.project_name,
            "application_name": event.application_name,
            "application_type": event.application_type,
            "error_message": event.error_message,
            "build_link": event.build_link,
            "date": human_datetime(ts),
        },
    )
