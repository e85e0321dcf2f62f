"""PostgreSQL implementation of OrgRepo.

Balance changes are single UPDATE statements (``credits = credits + n``)
so concurrent writers never lose an increment.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.db.tables import OrganizationRow
from tenantguard.models.organization import Organization


def _search_filter(query: str | None):
    """Admin search: non-deleted orgs whose name or slug contains ``query``."""
    live = OrganizationRow.deleted_at.is_(None)
    if not query:
        return live
    pattern = f"%{query}%"
    return and_(
        live,
        or_(OrganizationRow.name.ilike(pattern), OrganizationRow.slug.ilike(pattern)),
    )


class PgOrgRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.id == org_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_org(row) if row is not None else None

    async def get_by_slug(self, slug: str) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_org(row) if row is not None else None

    async def get_by_stripe_customer_id(self, customer_id: str) -> Organization | None:
        stmt = select(OrganizationRow).where(
            OrganizationRow.stripe_customer_id == customer_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_org(row) if row is not None else None

    async def add(self, org: Organization) -> None:
        self._session.add(
            OrganizationRow(
                id=org.id,
                name=org.name,
                slug=org.slug,
                credits=org.credits,
                is_primary=org.is_primary,
                deleted_at=org.deleted_at,
                last_free_refill_at=org.last_free_refill_at,
                credits_reminder_sent=org.credits_reminder_sent,
                stripe_customer_id=org.stripe_customer_id,
                created_at=org.created_at,
            )
        )
        await self._session.flush()

    async def update_name(self, org_id: UUID, name: str) -> Organization | None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org_id)
            .values(name=name)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_by_id(org_id)

    async def add_credits(self, org_id: UUID, amount: int) -> None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org_id)
            .values(credits=OrganizationRow.credits + amount)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("organization not found")

    async def refill_credits(
        self, org_id: UUID, amount: int, refilled_at: datetime
    ) -> bool:
        # Re-check the balance in the WHERE clause; a re-run is a no-op.
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org_id, OrganizationRow.credits < amount)
            .values(
                credits=amount,
                last_free_refill_at=refilled_at,
                credits_reminder_sent=False,
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def set_reminder_sent(self, org_id: UUID, sent: bool) -> None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org_id)
            .values(credits_reminder_sent=sent)
        )
        await self._session.execute(stmt)

    async def set_stripe_customer_id(self, org_id: UUID, customer_id: str) -> None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org_id)
            .values(stripe_customer_id=customer_id)
        )
        await self._session.execute(stmt)

    async def soft_delete(self, org_id: UUID, deleted_at: datetime) -> None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org_id)
            .values(deleted_at=deleted_at)
        )
        await self._session.execute(stmt)

    async def hard_delete(self, org_id: UUID) -> bool:
        # Members, invites, projects and the subscription go via ON DELETE CASCADE.
        stmt = delete(OrganizationRow).where(OrganizationRow.id == org_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_active(self) -> list[Organization]:
        stmt = select(OrganizationRow).where(OrganizationRow.deleted_at.is_(None))
        return [_row_to_org(r) for r in (await self._session.execute(stmt)).scalars()]

    async def list_deleted_before(self, cutoff: datetime) -> list[Organization]:
        stmt = select(OrganizationRow).where(
            OrganizationRow.deleted_at.is_not(None),
            OrganizationRow.deleted_at <= cutoff,
        )
        return [_row_to_org(r) for r in (await self._session.execute(stmt)).scalars()]

    async def search(
        self, query: str | None, offset: int, limit: int
    ) -> list[Organization]:
        stmt = (
            select(OrganizationRow)
            .where(_search_filter(query))
            .order_by(OrganizationRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt.offset(offset).limit(limit))).scalars()
        return [_row_to_org(r) for r in rows]

    async def count(self, query: str | None = None) -> int:
        stmt = select(func.count()).select_from(OrganizationRow).where(_search_filter(query))
        return (await self._session.execute(stmt)).scalar_one()

    async def lock(self, org_ids: list[UUID]) -> None:
        """Row-lock the given organizations until the transaction ends."""
        stmt = (
            select(OrganizationRow.id)
            .where(OrganizationRow.id.in_(org_ids))
            .order_by(OrganizationRow.id)
            .with_for_update()
        )
        await self._session.execute(stmt)


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        slug=row.slug,
        credits=row.credits,
        is_primary=row.is_primary,
        deleted_at=row.deleted_at,
        last_free_refill_at=row.last_free_refill_at,
        credits_reminder_sent=row.credits_reminder_sent,
        stripe_customer_id=row.stripe_customer_id,
        created_at=row.created_at,
    )
