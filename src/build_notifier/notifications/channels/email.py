"""SMTP email channel implementation using aiosmtplib."""

from __future__ import annotations

import logging
from email.message import EmailMessage as MIMEEmailMessage
from typing import TYPE_CHECKING

import aiosmtplib

from build_notifier.notifications.errors import DeliveryError
from build_notifier.notifications.renderer import JinjaEmailRenderer, render_best_effort

if TYPE_CHECKING:
    from build_notifier.notifications.models import EmailConfig, EmailMessage
    from build_notifier.notifications.renderer import EmailRenderer

logger = logging.getLogger(__name__)

# Port that expects TLS from the first byte; other ports negotiate STARTTLS
IMPLICIT_TLS_PORT = 465


class EmailChannel:
    """SMTP channel for sending notification emails.

    Renders the HTML body from the message's template context, then sends
    it through the subscription's SMTP server. A body that fails to render
    is replaced by an empty one rather than aborting the send.
    """

    name = "email"

    def __init__(
        self,
        renderer: EmailRenderer | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        """Initialize email channel.

        Args:
            renderer: Template renderer for the HTML body.
            timeout: SMTP connection timeout in seconds.
        """
        self.renderer = renderer or JinjaEmailRenderer()
        self.timeout = timeout

    def _build_mime(self, config: EmailConfig, subject: str, html: str) -> MIMEEmailMessage:
        mime = MIMEEmailMessage()
        mime["From"] = config.from_address
        mime["To"] = ", ".join(config.to_addresses)
        mime["Subject"] = subject
        mime.set_content(html, subtype="html")
        return mime

    async def send(self, config: EmailConfig, message: EmailMessage) -> None:
        """Render and send the email.

        Raises:
            DeliveryError: If the SMTP server rejected or could not be reached.
        """
        if not config.to_addresses:
            raise DeliveryError(self.name, "no recipients configured")

        html = await render_best_effort(self.renderer, message.template, message.context)
        mime = self._build_mime(config, message.subject, html)
        implicit_tls = config.smtp_port == IMPLICIT_TLS_PORT

        try:
            await aiosmtplib.send(
                mime,
                hostname=config.smtp_server,
                port=config.smtp_port,
                username=config.username or None,
                password=config.password or None,
                use_tls=implicit_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Email delivery failed: {e}")
            raise DeliveryError(self.name, str(e)) from e

        logger.info(f"Email notification delivered to {len(config.to_addresses)} recipient(s)")
