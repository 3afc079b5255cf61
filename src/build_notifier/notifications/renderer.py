"""Email template rendering with Jinja2.

Rendering failures surface as ``RenderDegradation``. Callers that deliver
email use :func:`render_best_effort`, which turns a degradation into an
empty body so the send still goes out.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape

from build_notifier.notifications.errors import RenderDegradation

logger = logging.getLogger(__name__)


class EmailRenderer(Protocol):
    """Protocol for email body renderers."""

    async def render(self, template_name: str, context: dict[str, Any]) -> str:
        """Render a template to an HTML string.

        Should raise RenderDegradation on failure. Any other exception is
        treated the same way by render_best_effort.
        """
        ...


class JinjaEmailRenderer:
    """Jinja2-based email template renderer.

    Templates ship inside the package under ``notifications/templates``.

    Example:
        renderer = JinjaEmailRenderer()
        html = await renderer.render("build_failed.html", {"project_name": "Acme"})
    """

    def __init__(self, environment: Environment | None = None) -> None:
        """Initialize template renderer.

        Args:
            environment: Custom Jinja2 environment. Must have ``enable_async``
                set. Defaults to the packaged templates.
        """
        self.env = environment or Environment(
            loader=PackageLoader("build_notifier.notifications", "templates"),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
            enable_async=True,
        )

    async def render(self, template_name: str, context: dict[str, Any]) -> str:
        """Render a template.

        Raises:
            RenderDegradation: If the template is missing or fails to render.
        """
        try:
            template = self.env.get_template(template_name)
            return await template.render_async(**context)
        except TemplateError as e:
            raise RenderDegradation(f"Failed to render {template_name}: {e}") from e


async def render_best_effort(
    renderer: EmailRenderer,
    template_name: str,
    context: dict[str, Any],
) -> str:
    """Render a template, degrading to an empty body on failure."""
    try:
        return await renderer.render(template_name, context)
    except RenderDegradation as e:
        logger.warning(f"Email render degraded, sending empty body: {e}")
        return ""
    except Exception as e:
        logger.exception(f"Unexpected error rendering {template_name}, sending empty body: {e}")
        return ""
