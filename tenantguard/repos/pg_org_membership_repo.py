"""PostgreSQL implementation of OrgMembershipRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.permissions import Role
from tenantguard.db.tables import MembershipRow, OrganizationRow, UserRow
from tenantguard.models.organization import Membership


class PgOrgMembershipRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, org_id: UUID, user_id: UUID) -> Membership | None:
        stmt = select(MembershipRow).where(
            MembershipRow.org_id == org_id, MembershipRow.user_id == user_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_membership(row) if row is not None else None

    async def get_by_email(self, org_id: UUID, email: str) -> Membership | None:
        stmt = (
            select(MembershipRow)
            .join(UserRow, UserRow.id == MembershipRow.user_id)
            .where(
                MembershipRow.org_id == org_id,
                UserRow.email == email.strip().lower(),
            )
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_membership(row) if row is not None else None

    async def add(self, membership: Membership) -> None:
        self._session.add(
            MembershipRow(
                org_id=membership.org_id,
                user_id=membership.user_id,
                role=membership.role.value,
                created_at=membership.created_at,
            )
        )
        await self._session.flush()

    async def remove(self, org_id: UUID, user_id: UUID) -> bool:
        stmt = delete(MembershipRow).where(
            MembershipRow.org_id == org_id, MembershipRow.user_id == user_id
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: Role
    ) -> Membership | None:
        stmt = (
            update(MembershipRow)
            .where(MembershipRow.org_id == org_id, MembershipRow.user_id == user_id)
            .values(role=new_role.value)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(org_id, user_id)

    async def list_by_org(self, org_id: UUID) -> list[Membership]:
        stmt = (
            select(MembershipRow)
            .where(MembershipRow.org_id == org_id)
            .order_by(MembershipRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars()
        return [_row_to_membership(r) for r in rows]

    async def list_by_user(self, user_id: UUID) -> list[Membership]:
        stmt = (
            select(MembershipRow)
            .where(MembershipRow.user_id == user_id)
            .order_by(MembershipRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars()
        return [_row_to_membership(r) for r in rows]

    async def count_by_org(self, org_id: UUID) -> int:
        stmt = select(func.count()).where(MembershipRow.org_id == org_id)
        return (await self._session.execute(stmt)).scalar_one()

    async def count_owners(self, org_id: UUID) -> int:
        stmt = select(func.count()).where(
            MembershipRow.org_id == org_id, MembershipRow.role == Role.OWNER.value
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_owned_orgs(
        self, user_id: UUID, *, active_only: bool = False
    ) -> int:
        stmt = select(func.count()).where(
            MembershipRow.user_id == user_id, MembershipRow.role == Role.OWNER.value
        )
        if active_only:
            stmt = stmt.join(
                OrganizationRow, OrganizationRow.id == MembershipRow.org_id
            ).where(OrganizationRow.deleted_at.is_(None))
        return (await self._session.execute(stmt)).scalar_one()


def _row_to_membership(row: MembershipRow) -> Membership:
    return Membership(
        org_id=row.org_id,
        user_id=row.user_id,
        role=Role(row.role),
        created_at=row.created_at,
    )
