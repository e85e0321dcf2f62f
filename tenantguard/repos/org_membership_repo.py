from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from tenantguard.core.permissions import Role
from tenantguard.models.organization import Membership
from tenantguard.repos.org_repo import InMemoryOrgRepo
from tenantguard.repos.user_repo import InMemoryUserRepo


class OrgMembershipRepo(Protocol):
    async def get(self, org_id: UUID, user_id: UUID) -> Membership | None: ...
    async def get_by_email(self, org_id: UUID, email: str) -> Membership | None: ...
    async def add(self, membership: Membership) -> None: ...
    async def remove(self, org_id: UUID, user_id: UUID) -> bool: ...
    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: Role
    ) -> Membership | None: ...
    async def list_by_org(self, org_id: UUID) -> list[Membership]: ...
    async def list_by_user(self, user_id: UUID) -> list[Membership]: ...
    async def count_by_org(self, org_id: UUID) -> int: ...
    async def count_owners(self, org_id: UUID) -> int: ...
    async def count_owned_orgs(
        self, user_id: UUID, *, active_only: bool = False
    ) -> int: ...


class InMemoryOrgMembershipRepo:
    """Dict-backed memberships.  Joins go through the sibling repos."""

    def __init__(self, orgs: InMemoryOrgRepo, users: InMemoryUserRepo) -> None:
        self._store: dict[tuple[UUID, UUID], Membership] = {}
        self._orgs = orgs
        self._users = users

    async def get(self, org_id: UUID, user_id: UUID) -> Membership | None:
        return self._store.get((org_id, user_id))

    async def get_by_email(self, org_id: UUID, email: str) -> Membership | None:
        user = await self._users.get_by_email(email)
        if user is None:
            return None
        return self._store.get((org_id, user.id))

    async def add(self, membership: Membership) -> None:
        key = (membership.org_id, membership.user_id)
        if key in self._store:
            raise ValueError("membership already exists")
        self._store[key] = membership

    async def remove(self, org_id: UUID, user_id: UUID) -> bool:
        return self._store.pop((org_id, user_id), None) is not None

    async def remove_org(self, org_id: UUID) -> None:
        for key in [k for k in self._store if k[0] == org_id]:
            del self._store[key]

    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: Role
    ) -> Membership | None:
        key = (org_id, user_id)
        existing = self._store.get(key)
        if existing is None:
            return None
        updated = replace(existing, role=new_role)
        self._store[key] = updated
        return updated

    async def list_by_org(self, org_id: UUID) -> list[Membership]:
        members = [m for m in self._store.values() if m.org_id == org_id]
        return sorted(members, key=lambda m: m.created_at)

    async def list_by_user(self, user_id: UUID) -> list[Membership]:
        members = [m for m in self._store.values() if m.user_id == user_id]
        return sorted(members, key=lambda m: m.created_at)

    async def count_by_org(self, org_id: UUID) -> int:
        return sum(1 for m in self._store.values() if m.org_id == org_id)

    async def count_owners(self, org_id: UUID) -> int:
        return sum(
            1
            for m in self._store.values()
            if m.org_id == org_id and m.role == Role.OWNER
        )

    async def count_owned_orgs(
        self, user_id: UUID, *, active_only: bool = False
    ) -> int:
        count = 0
        for m in self._store.values():
            if m.user_id != user_id or m.role != Role.OWNER:
                continue
            if active_only:
                org = await self._orgs.get_by_id(m.org_id)
                if org is None or org.deleted_at is not None:
                    continue
            count += 1
        return count
