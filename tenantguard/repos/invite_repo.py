from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from tenantguard.models.invite import Invite, InviteStatus


class InviteRepo(Protocol):
    async def get_by_id(self, invite_id: UUID) -> Invite | None: ...
    async def get_by_token(self, token: str) -> Invite | None: ...
    async def add(self, invite: Invite) -> None: ...
    async def list_by_org(self, org_id: UUID) -> list[Invite]: ...
    async def count_pending(self, org_id: UUID) -> int: ...
    async def set_status(self, invite_id: UUID, status: InviteStatus) -> None: ...
    async def reissue(
        self, invite_id: UUID, token: str, expires_at: datetime
    ) -> Invite | None: ...
    async def delete(self, invite_id: UUID) -> bool: ...
    async def delete_by_email(self, org_id: UUID, email: str) -> int: ...
    async def expire_stale(self, org_id: UUID, now: datetime) -> int: ...


class InMemoryInviteRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Invite] = {}

    async def get_by_id(self, invite_id: UUID) -> Invite | None:
        return self._by_id.get(invite_id)

    async def get_by_token(self, token: str) -> Invite | None:
        return next((i for i in self._by_id.values() if i.token == token), None)

    async def add(self, invite: Invite) -> None:
        if await self.get_by_token(invite.token) is not None:
            raise ValueError("invite token already exists")
        self._by_id[invite.id] = invite

    async def list_by_org(self, org_id: UUID) -> list[Invite]:
        invites = [i for i in self._by_id.values() if i.org_id == org_id]
        return sorted(invites, key=lambda i: i.created_at, reverse=True)

    async def count_pending(self, org_id: UUID) -> int:
        return sum(
            1
            for i in self._by_id.values()
            if i.org_id == org_id and i.status == InviteStatus.PENDING
        )

    async def set_status(self, invite_id: UUID, status: InviteStatus) -> None:
        existing = self._by_id.get(invite_id)
        if existing is not None:
            self._by_id[invite_id] = replace(existing, status=status)

    async def reissue(
        self, invite_id: UUID, token: str, expires_at: datetime
    ) -> Invite | None:
        existing = self._by_id.get(invite_id)
        if existing is None:
            return None
        updated = replace(
            existing, token=token, expires_at=expires_at, status=InviteStatus.PENDING
        )
        self._by_id[invite_id] = updated
        return updated

    async def delete(self, invite_id: UUID) -> bool:
        return self._by_id.pop(invite_id, None) is not None

    async def delete_by_email(self, org_id: UUID, email: str) -> int:
        doomed = [
            i.id
            for i in self._by_id.values()
            if i.org_id == org_id and i.email == email
        ]
        for invite_id in doomed:
            del self._by_id[invite_id]
        return len(doomed)

    async def remove_org(self, org_id: UUID) -> None:
        for invite_id in [i.id for i in self._by_id.values() if i.org_id == org_id]:
            del self._by_id[invite_id]

    async def expire_stale(self, org_id: UUID, now: datetime) -> int:
        stale = [
            i
            for i in self._by_id.values()
            if i.org_id == org_id
            and i.status == InviteStatus.PENDING
            and i.expires_at <= now
        ]
        for invite in stale:
            self._by_id[invite.id] = replace(invite, status=InviteStatus.EXPIRED)
        return len(stale)
