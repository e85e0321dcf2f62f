"""PostgreSQL implementation of InviteRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.permissions import Role
from tenantguard.db.tables import InviteRow
from tenantguard.models.invite import Invite, InviteStatus


class PgInviteRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, invite_id: UUID) -> Invite | None:
        stmt = select(InviteRow).where(InviteRow.id == invite_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_invite(row) if row is not None else None

    async def get_by_token(self, token: str) -> Invite | None:
        stmt = select(InviteRow).where(InviteRow.token == token)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_invite(row) if row is not None else None

    async def add(self, invite: Invite) -> None:
        self._session.add(
            InviteRow(
                id=invite.id,
                email=invite.email,
                org_id=invite.org_id,
                inviter_id=invite.inviter_id,
                role=invite.role.value,
                token=invite.token,
                expires_at=invite.expires_at,
                status=invite.status.value,
                created_at=invite.created_at,
            )
        )
        await self._session.flush()

    async def list_by_org(self, org_id: UUID) -> list[Invite]:
        stmt = (
            select(InviteRow)
            .where(InviteRow.org_id == org_id)
            .order_by(InviteRow.created_at.desc())
        )
        return [_row_to_invite(r) for r in (await self._session.execute(stmt)).scalars()]

    async def count_pending(self, org_id: UUID) -> int:
        stmt = select(func.count()).where(
            InviteRow.org_id == org_id,
            InviteRow.status == InviteStatus.PENDING.value,
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def set_status(self, invite_id: UUID, status: InviteStatus) -> None:
        stmt = update(InviteRow).where(InviteRow.id == invite_id).values(status=status.value)
        await self._session.execute(stmt)

    async def reissue(
        self, invite_id: UUID, token: str, expires_at: datetime
    ) -> Invite | None:
        stmt = (
            update(InviteRow)
            .where(InviteRow.id == invite_id)
            .values(
                token=token,
                expires_at=expires_at,
                status=InviteStatus.PENDING.value,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_by_id(invite_id)

    async def delete(self, invite_id: UUID) -> bool:
        result = await self._session.execute(
            delete(InviteRow).where(InviteRow.id == invite_id)
        )
        return result.rowcount > 0

    async def delete_by_email(self, org_id: UUID, email: str) -> int:
        result = await self._session.execute(
            delete(InviteRow).where(InviteRow.org_id == org_id, InviteRow.email == email)
        )
        return result.rowcount

    async def expire_stale(self, org_id: UUID, now: datetime) -> int:
        stmt = (
            update(InviteRow)
            .where(
                InviteRow.org_id == org_id,
                InviteRow.status == InviteStatus.PENDING.value,
                InviteRow.expires_at <= now,
            )
            .values(status=InviteStatus.EXPIRED.value)
        )
        result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_invite(row: InviteRow) -> Invite:
    return Invite(
        id=row.id,
        email=row.email,
        org_id=row.org_id,
        inviter_id=row.inviter_id,
        role=Role(row.role),
        token=row.token,
        expires_at=row.expires_at,
        status=InviteStatus(row.status),
        created_at=row.created_at,
    )
