"""Logging setup for processes embedding the notifier.

Call :func:`configure_logging` once at startup. Without arguments it reads
``LOG_LEVEL`` through the notifier settings:

    from build_notifier.log import configure_logging
    from build_notifier.notifications import create_dispatcher

    configure_logging()
    dispatcher = create_dispatcher()
"""

from __future__ import annotations

import logging.config
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from build_notifier.config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Transport libraries log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "aiosmtplib")


def build_logging_config(level: str) -> dict[str, Any]:
    """Build a dictConfig mapping for the given level name."""
    formatter = "detailed" if level == "DEBUG" else "standard"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
            "detailed": {"format": DEBUG_LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": formatter,
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    }


def configure_logging(settings: Settings | None = None, *, level: str | None = None) -> str:
    """Configure process logging from settings.

    Args:
        settings: Settings providing ``log_level``. Defaults to ``get_settings()``.
        level: Explicit level name overriding the settings.

    Returns:
        The level name that was applied.
    """
    if level is None:
        if settings is None:
            from build_notifier.config import get_settings

            settings = get_settings()
        level = settings.log_level

    logging.config.dictConfig(build_logging_config(level))
    return level
