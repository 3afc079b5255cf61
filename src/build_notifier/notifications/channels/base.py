"""Shared sender protocol and HTTP retry loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import httpx

from build_notifier.notifications.errors import DeliveryError

logger = logging.getLogger(__name__)


class ChannelSender(Protocol):
    """Protocol for channel delivery capabilities."""

    name: str

    async def send(self, config: Any, message: Any) -> None:
        """Deliver a formatted message. Raises DeliveryError on failure."""
        ...


class WebhookSender:
    """Base class for senders that POST JSON over HTTP.

    Retries with exponential backoff and honors rate limit responses.
    Subclasses decide what counts as success via :meth:`_is_success` and
    how long a 429 asks them to wait via :meth:`_retry_after`.
    """

    name = "webhook"

    def __init__(
        self,
        *,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the sender.

        Args:
            max_retries: Maximum attempts per message.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds.
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    def _is_success(self, response: httpx.Response) -> bool:
        return 200 <= response.status_code < 300

    def _retry_after(self, response: httpx.Response) -> float | None:
        """Seconds to wait when rate limited, or None if not rate limited."""
        if response.status_code != 429:
            return None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and "retry_after" in body:
            try:
                return float(body["retry_after"])
            except (TypeError, ValueError):
                pass
        try:
            return float(response.headers.get("Retry-After", 1.0))
        except (TypeError, ValueError):
            return 1.0

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """POST payload to url until it succeeds or attempts run out.

        Raises:
            DeliveryError: If every attempt failed.
        """
        last_error = "no attempts made"

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)

                    if self._is_success(response):
                        logger.info(f"{self.name.capitalize()} notification delivered")
                        return response

                    retry_after = self._retry_after(response)
                    if retry_after is not None:
                        logger.warning(f"{self.name} rate limited, retry after {retry_after}s")
                        last_error = "rate limited"
                        await asyncio.sleep(retry_after)
                        continue

                    last_error = f"HTTP {response.status_code}: {response.text}"
                    logger.error(f"{self.name} delivery failed: {last_error}")

            except httpx.TimeoutException:
                last_error = "timeout"
                logger.warning(f"{self.name} timeout (attempt {attempt + 1})")
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.error(f"{self.name} HTTP error: {e}")

            # Exponential backoff
            if attempt < self.max_retries - 1:
                delay = self.retry_delay * (2**attempt)
                await asyncio.sleep(delay)

        logger.error(f"{self.name} delivery failed after all retries")
        raise DeliveryError(self.name, last_error)
