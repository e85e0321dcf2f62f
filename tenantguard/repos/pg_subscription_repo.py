"""PostgreSQL implementation of SubscriptionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.db.tables import SubscriptionRow
from tenantguard.models.subscription import ACTIVE, Subscription


class PgSubscriptionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_org(self, org_id: UUID) -> Subscription | None:
        stmt = select(SubscriptionRow).where(SubscriptionRow.org_id == org_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_subscription(row) if row is not None else None

    async def get_by_stripe_id(self, stripe_subscription_id: str) -> Subscription | None:
        stmt = select(SubscriptionRow).where(
            SubscriptionRow.stripe_subscription_id == stripe_subscription_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_subscription(row) if row is not None else None

    async def add(self, subscription: Subscription) -> None:
        self._session.add(_subscription_to_row(subscription))
        await self._session.flush()

    async def save(self, subscription: Subscription) -> None:
        """Insert, or overwrite the row with the same id."""
        await self._session.merge(_subscription_to_row(subscription))
        await self._session.flush()

    async def set_status(self, subscription_id: UUID, status: str) -> None:
        stmt = (
            update(SubscriptionRow)
            .where(SubscriptionRow.id == subscription_id)
            .values(status=status)
        )
        await self._session.execute(stmt)

    async def set_reminder_sent(self, subscription_id: UUID, sent: bool) -> None:
        stmt = (
            update(SubscriptionRow)
            .where(SubscriptionRow.id == subscription_id)
            .values(period_end_reminder_sent=sent)
        )
        await self._session.execute(stmt)

    async def list_active(self) -> list[Subscription]:
        stmt = select(SubscriptionRow).where(SubscriptionRow.status == ACTIVE)
        rows = (await self._session.execute(stmt)).scalars()
        return [_row_to_subscription(r) for r in rows]

    async def list_page(
        self, status: str | None, offset: int, limit: int
    ) -> list[Subscription]:
        stmt = select(SubscriptionRow).order_by(SubscriptionRow.created_at.desc())
        if status is not None:
            stmt = stmt.where(SubscriptionRow.status == status)
        rows = (await self._session.execute(stmt.offset(offset).limit(limit))).scalars()
        return [_row_to_subscription(r) for r in rows]

    async def count(self, status: str | None = None) -> int:
        stmt = select(func.count()).select_from(SubscriptionRow)
        if status is not None:
            stmt = stmt.where(SubscriptionRow.status == status)
        return (await self._session.execute(stmt)).scalar_one()


def _subscription_to_row(subscription: Subscription) -> SubscriptionRow:
    return SubscriptionRow(
        id=subscription.id,
        org_id=subscription.org_id,
        stripe_subscription_id=subscription.stripe_subscription_id,
        plan_id=subscription.plan_id,
        status=subscription.status,
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        period_end_reminder_sent=subscription.period_end_reminder_sent,
        created_at=subscription.created_at,
    )


def _row_to_subscription(row: SubscriptionRow) -> Subscription:
    return Subscription(
        id=row.id,
        org_id=row.org_id,
        stripe_subscription_id=row.stripe_subscription_id,
        plan_id=row.plan_id,
        status=row.status,
        current_period_start=row.current_period_start,
        current_period_end=row.current_period_end,
        period_end_reminder_sent=row.period_end_reminder_sent,
        created_at=row.created_at,
    )
