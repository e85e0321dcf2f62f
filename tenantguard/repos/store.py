"""The Store: one handle bundling every repository for a request.

Services take a ``Store`` rather than six repos so a single argument
carries both data access and the atomic-section primitive:

    async with store.atomic(org_id):
        ...  # re-check an invariant, then write

``atomic`` runs the block as one transaction and serializes it against
other atomic blocks touching the same organization(s), or the same user
when ``user_id`` is given.  In Postgres that is a savepoint plus
``SELECT ... FOR UPDATE`` on the user and organization rows; in memory
it is a per-key ``asyncio.Lock`` that is dropped once nobody holds or
awaits it.  The user is locked first and organizations follow in sorted
id order, so two blocks locking the same keys cannot deadlock.

The in-memory store does not roll back on error.  Atomic blocks are
written check-first so nothing is mutated before the last check passes.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from typing import Protocol
from uuid import UUID

from tenantguard.repos.invite_repo import InMemoryInviteRepo, InviteRepo
from tenantguard.repos.org_membership_repo import (
    InMemoryOrgMembershipRepo,
    OrgMembershipRepo,
)
from tenantguard.repos.org_repo import InMemoryOrgRepo, OrgRepo
from tenantguard.repos.project_repo import InMemoryProjectRepo, ProjectRepo
from tenantguard.repos.subscription_repo import (
    InMemorySubscriptionRepo,
    SubscriptionRepo,
)
from tenantguard.repos.user_repo import InMemoryUserRepo, UserRepo


class Store(Protocol):
    users: UserRepo
    orgs: OrgRepo
    members: OrgMembershipRepo
    invites: InviteRepo
    projects: ProjectRepo
    subscriptions: SubscriptionRepo

    def atomic(
        self, *org_ids: UUID, user_id: UUID | None = None
    ) -> AbstractAsyncContextManager[None]: ...


class _KeyedLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.holders = 0


class InMemoryStore:
    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Drop all data.  Used between tests."""
        self.users = InMemoryUserRepo()
        self.orgs = InMemoryOrgRepo()
        self.members = InMemoryOrgMembershipRepo(self.orgs, self.users)
        self.invites = InMemoryInviteRepo()
        self.projects = InMemoryProjectRepo()
        self.subscriptions = InMemorySubscriptionRepo()
        self.orgs.cascade = [
            self.members,
            self.invites,
            self.projects,
            self.subscriptions,
        ]
        self._locks: dict[tuple[str, UUID], _KeyedLock] = {}

    @asynccontextmanager
    async def _hold(self, key: tuple[str, UUID]) -> AsyncIterator[None]:
        entry = self._locks.setdefault(key, _KeyedLock())
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[key]

    @asynccontextmanager
    async def atomic(
        self, *org_ids: UUID, user_id: UUID | None = None
    ) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            if user_id is not None:
                await stack.enter_async_context(self._hold(("user", user_id)))
            for org_id in sorted(set(org_ids), key=str):
                await stack.enter_async_context(self._hold(("org", org_id)))
            yield


memory_store = InMemoryStore()
