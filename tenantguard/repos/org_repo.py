from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from tenantguard.models.organization import Organization


class OrgRepo(Protocol):
    async def get_by_id(self, org_id: UUID) -> Organization | None: ...
    async def get_by_slug(self, slug: str) -> Organization | None: ...
    async def get_by_stripe_customer_id(self, customer_id: str) -> Organization | None: ...
    async def add(self, org: Organization) -> None: ...
    async def update_name(self, org_id: UUID, name: str) -> Organization | None: ...
    async def add_credits(self, org_id: UUID, amount: int) -> None: ...
    async def refill_credits(
        self, org_id: UUID, amount: int, refilled_at: datetime
    ) -> bool: ...
    async def set_reminder_sent(self, org_id: UUID, sent: bool) -> None: ...
    async def set_stripe_customer_id(self, org_id: UUID, customer_id: str) -> None: ...
    async def soft_delete(self, org_id: UUID, deleted_at: datetime) -> None: ...
    async def hard_delete(self, org_id: UUID) -> bool: ...
    async def list_active(self) -> list[Organization]: ...
    async def list_deleted_before(self, cutoff: datetime) -> list[Organization]: ...
    async def search(
        self, query: str | None, offset: int, limit: int
    ) -> list[Organization]: ...
    async def count(self, query: str | None = None) -> int: ...


def _matches(org: Organization, query: str | None) -> bool:
    if org.deleted_at is not None:
        return False
    if not query:
        return True
    q = query.lower()
    return q in org.name.lower() or q in org.slug.lower()


class InMemoryOrgRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Organization] = {}
        # Repos holding rows that reference an org; emptied on hard delete.
        self.cascade: list = []

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        return self._by_id.get(org_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        return next((o for o in self._by_id.values() if o.slug == slug), None)

    async def get_by_stripe_customer_id(self, customer_id: str) -> Organization | None:
        return next(
            (o for o in self._by_id.values() if o.stripe_customer_id == customer_id), None
        )

    async def add(self, org: Organization) -> None:
        if await self.get_by_slug(org.slug) is not None:
            raise ValueError("slug already exists")
        self._by_id[org.id] = org

    def _update(self, org_id: UUID, **changes) -> Organization | None:
        existing = self._by_id.get(org_id)
        if existing is None:
            return None
        updated = replace(existing, **changes)
        self._by_id[org_id] = updated
        return updated

    async def update_name(self, org_id: UUID, name: str) -> Organization | None:
        return self._update(org_id, name=name)

    async def add_credits(self, org_id: UUID, amount: int) -> None:
        existing = self._by_id.get(org_id)
        if existing is None:
            raise KeyError("organization not found")
        self._update(org_id, credits=existing.credits + amount)

    async def refill_credits(
        self, org_id: UUID, amount: int, refilled_at: datetime
    ) -> bool:
        existing = self._by_id.get(org_id)
        if existing is None or existing.credits >= amount:
            return False
        self._update(
            org_id,
            credits=amount,
            last_free_refill_at=refilled_at,
            credits_reminder_sent=False,
        )
        return True

    async def set_reminder_sent(self, org_id: UUID, sent: bool) -> None:
        self._update(org_id, credits_reminder_sent=sent)

    async def set_stripe_customer_id(self, org_id: UUID, customer_id: str) -> None:
        self._update(org_id, stripe_customer_id=customer_id)

    async def soft_delete(self, org_id: UUID, deleted_at: datetime) -> None:
        self._update(org_id, deleted_at=deleted_at)

    async def hard_delete(self, org_id: UUID) -> bool:
        if self._by_id.pop(org_id, None) is None:
            return False
        for repo in self.cascade:
            await repo.remove_org(org_id)
        return True

    async def list_active(self) -> list[Organization]:
        return [o for o in self._by_id.values() if o.deleted_at is None]

    async def list_deleted_before(self, cutoff: datetime) -> list[Organization]:
        return [
            o
            for o in self._by_id.values()
            if o.deleted_at is not None and o.deleted_at <= cutoff
        ]

    async def search(
        self, query: str | None, offset: int, limit: int
    ) -> list[Organization]:
        hits = [o for o in self._by_id.values() if _matches(o, query)]
        hits.sort(key=lambda o: o.created_at, reverse=True)
        return hits[offset : offset + limit]

    async def count(self, query: str | None = None) -> int:
        return sum(1 for o in self._by_id.values() if _matches(o, query))
