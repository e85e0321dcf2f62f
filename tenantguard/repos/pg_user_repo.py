"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.db.tables import UserRow
from tenantguard.models.user import User


def _search_filter(query: str | None):
    if not query:
        return None
    pattern = f"%{query}%"
    return or_(UserRow.email.ilike(pattern), UserRow.name.ilike(pattern))


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        row = await self._session.get(UserRow, user_id)
        if row is None:
            return None
        return _row_to_user(row)

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(UserRow).where(UserRow.email == email.strip().lower())
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_user(row)

    async def add(self, user: User) -> None:
        row = UserRow(
            id=user.id,
            email=user.email,
            name=user.name,
            created_at=user.created_at,
        )
        self._session.add(row)
        await self._session.flush()

    async def search(self, query: str | None, offset: int, limit: int) -> list[User]:
        stmt = select(UserRow).order_by(UserRow.created_at.desc())
        where = _search_filter(query)
        if where is not None:
            stmt = stmt.where(where)
        rows = (await self._session.execute(stmt.offset(offset).limit(limit))).scalars()
        return [_row_to_user(r) for r in rows]

    async def count(self, query: str | None = None) -> int:
        stmt = select(func.count()).select_from(UserRow)
        where = _search_filter(query)
        if where is not None:
            stmt = stmt.where(where)
        return (await self._session.execute(stmt)).scalar_one()

    async def lock(self, user_id: UUID) -> None:
        """Row-lock the user until the transaction ends."""
        stmt = select(UserRow.id).where(UserRow.id == user_id).with_for_update()
        await self._session.execute(stmt)


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name or "",
        created_at=row.created_at,
    )
