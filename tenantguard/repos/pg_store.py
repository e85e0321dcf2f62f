"""Store backed by one request-scoped AsyncSession."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.repos.pg_invite_repo import PgInviteRepo
from tenantguard.repos.pg_org_membership_repo import PgOrgMembershipRepo
from tenantguard.repos.pg_org_repo import PgOrgRepo
from tenantguard.repos.pg_project_repo import PgProjectRepo
from tenantguard.repos.pg_subscription_repo import PgSubscriptionRepo
from tenantguard.repos.pg_user_repo import PgUserRepo


class PgStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.users = PgUserRepo(session)
        self.orgs = PgOrgRepo(session)
        self.members = PgOrgMembershipRepo(session)
        self.invites = PgInviteRepo(session)
        self.projects = PgProjectRepo(session)
        self.subscriptions = PgSubscriptionRepo(session)

    @asynccontextmanager
    async def atomic(
        self, *org_ids: UUID, user_id: UUID | None = None
    ) -> AsyncIterator[None]:
        # Savepoint inside the request transaction; the row locks are held
        # until the outer transaction commits.
        async with self._session.begin_nested():
            if user_id is not None:
                await self.users.lock(user_id)
            if org_ids:
                await self.orgs.lock(sorted(set(org_ids), key=str))
            yield
