"""PostgreSQL implementation of ProjectRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.db.tables import ProjectRow
from tenantguard.models.project import Project


class PgProjectRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, project_id: UUID) -> Project | None:
        stmt = select(ProjectRow).where(ProjectRow.id == project_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_project(row) if row is not None else None

    async def get_by_slug(self, slug: str) -> Project | None:
        stmt = select(ProjectRow).where(ProjectRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_project(row) if row is not None else None

    async def add(self, project: Project) -> None:
        self._session.add(
            ProjectRow(
                id=project.id,
                name=project.name,
                slug=project.slug,
                org_id=project.org_id,
                created_at=project.created_at,
                updated_at=project.updated_at,
            )
        )
        await self._session.flush()

    async def list_by_org(self, org_id: UUID) -> list[Project]:
        stmt = (
            select(ProjectRow)
            .where(ProjectRow.org_id == org_id)
            .order_by(ProjectRow.updated_at.desc())
        )
        return [_row_to_project(r) for r in (await self._session.execute(stmt)).scalars()]

    async def count_by_org(self, org_id: UUID) -> int:
        stmt = select(func.count()).where(ProjectRow.org_id == org_id)
        return (await self._session.execute(stmt)).scalar_one()

    async def count(self) -> int:
        stmt = select(func.count()).select_from(ProjectRow)
        return (await self._session.execute(stmt)).scalar_one()

    async def update_name(
        self, project_id: UUID, name: str, updated_at: datetime
    ) -> Project | None:
        stmt = (
            update(ProjectRow)
            .where(ProjectRow.id == project_id)
            .values(name=name, updated_at=updated_at)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_by_id(project_id)

    async def delete(self, project_id: UUID) -> bool:
        result = await self._session.execute(
            delete(ProjectRow).where(ProjectRow.id == project_id)
        )
        return result.rowcount > 0


def _row_to_project(row: ProjectRow) -> Project:
    return Project(
        id=row.id,
        name=row.name,
        slug=row.slug,
        org_id=row.org_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
