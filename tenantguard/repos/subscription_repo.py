from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from tenantguard.models.subscription import ACTIVE, Subscription


class SubscriptionRepo(Protocol):
    async def get_by_org(self, org_id: UUID) -> Subscription | None: ...
    async def get_by_stripe_id(self, stripe_subscription_id: str) -> Subscription | None: ...
    async def add(self, subscription: Subscription) -> None: ...
    async def save(self, subscription: Subscription) -> None: ...
    async def set_status(self, subscription_id: UUID, status: str) -> None: ...
    async def set_reminder_sent(self, subscription_id: UUID, sent: bool) -> None: ...
    async def list_active(self) -> list[Subscription]: ...
    async def list_page(
        self, status: str | None, offset: int, limit: int
    ) -> list[Subscription]: ...
    async def count(self, status: str | None = None) -> int: ...


class InMemorySubscriptionRepo:
    def __init__(self) -> None:
        self._by_org: dict[UUID, Subscription] = {}

    async def get_by_org(self, org_id: UUID) -> Subscription | None:
        return self._by_org.get(org_id)

    async def get_by_stripe_id(self, stripe_subscription_id: str) -> Subscription | None:
        return next(
            (
                s
                for s in self._by_org.values()
                if s.stripe_subscription_id == stripe_subscription_id
            ),
            None,
        )

    async def add(self, subscription: Subscription) -> None:
        if subscription.org_id in self._by_org:
            raise ValueError("organization already has a subscription")
        self._by_org[subscription.org_id] = subscription

    async def save(self, subscription: Subscription) -> None:
        """Insert, or replace the org's existing row."""
        self._by_org[subscription.org_id] = subscription

    def _update(self, subscription_id: UUID, **changes) -> None:
        for org_id, sub in self._by_org.items():
            if sub.id == subscription_id:
                self._by_org[org_id] = replace(sub, **changes)
                return

    async def set_status(self, subscription_id: UUID, status: str) -> None:
        self._update(subscription_id, status=status)

    async def set_reminder_sent(self, subscription_id: UUID, sent: bool) -> None:
        self._update(subscription_id, period_end_reminder_sent=sent)

    async def list_active(self) -> list[Subscription]:
        return [s for s in self._by_org.values() if s.status == ACTIVE]

    async def list_page(
        self, status: str | None, offset: int, limit: int
    ) -> list[Subscription]:
        subs = [s for s in self._by_org.values() if status is None or s.status == status]
        subs.sort(key=lambda s: s.created_at, reverse=True)
        return subs[offset : offset + limit]

    async def count(self, status: str | None = None) -> int:
        return sum(
            1 for s in self._by_org.values() if status is None or s.status == status
        )

    async def remove_org(self, org_id: UUID) -> None:
        self._by_org.pop(org_id, None)
