"""Subscription lookup.

The notifier never stores subscriptions itself. It asks a resolver, which
in a deployment is backed by whatever persistence layer owns notification
preferences.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from build_notifier.notifications.models import EventCategory, SubscriptionRecord


class SubscriptionResolver(Protocol):
    """Protocol for subscription sources."""

    async def find_subscriptions(
        self, category: EventCategory, owner_id: str
    ) -> Sequence[SubscriptionRecord]:
        """Return subscriptions of owner_id that opted into category."""
        ...


class InMemorySubscriptionResolver:
    """Resolver over a fixed list of records.

    Useful for tests and for callers that already hold the records.
    """

    def __init__(self, records: Iterable[SubscriptionRecord] = ()) -> None:
        self._records: list[SubscriptionRecord] = list(records)

    def add(self, record: SubscriptionRecord) -> None:
        self._records.append(record)

    async def find_subscriptions(
        self, category: EventCategory, owner_id: str
    ) -> list[SubscriptionRecord]:
        return [
            record
            for record in self._records
            if record.owner_id == owner_id and category in record.categories
        ]
