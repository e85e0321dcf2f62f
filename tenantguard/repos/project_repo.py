from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from tenantguard.models.project import Project


class ProjectRepo(Protocol):
    async def get_by_id(self, project_id: UUID) -> Project | None: ...
    async def get_by_slug(self, slug: str) -> Project | None: ...
    async def add(self, project: Project) -> None: ...
    async def list_by_org(self, org_id: UUID) -> list[Project]: ...
    async def count_by_org(self, org_id: UUID) -> int: ...
    async def count(self) -> int: ...
    async def update_name(
        self, project_id: UUID, name: str, updated_at: datetime
    ) -> Project | None: ...
    async def delete(self, project_id: UUID) -> bool: ...


class InMemoryProjectRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Project] = {}

    async def get_by_id(self, project_id: UUID) -> Project | None:
        return self._by_id.get(project_id)

    async def get_by_slug(self, slug: str) -> Project | None:
        return next((p for p in self._by_id.values() if p.slug == slug), None)

    async def add(self, project: Project) -> None:
        if await self.get_by_slug(project.slug) is not None:
            raise ValueError("slug already exists")
        self._by_id[project.id] = project

    async def list_by_org(self, org_id: UUID) -> list[Project]:
        projects = [p for p in self._by_id.values() if p.org_id == org_id]
        return sorted(projects, key=lambda p: p.updated_at, reverse=True)

    async def count_by_org(self, org_id: UUID) -> int:
        return sum(1 for p in self._by_id.values() if p.org_id == org_id)

    async def count(self) -> int:
        return len(self._by_id)

    async def update_name(
        self, project_id: UUID, name: str, updated_at: datetime
    ) -> Project | None:
        existing = self._by_id.get(project_id)
        if existing is None:
            return None
        updated = replace(existing, name=name, updated_at=updated_at)
        self._by_id[project_id] = updated
        return updated

    async def delete(self, project_id: UUID) -> bool:
        return self._by_id.pop(project_id, None) is not None

    async def remove_org(self, org_id: UUID) -> None:
        for project_id in [p.id for p in self._by_id.values() if p.org_id == org_id]:
            del self._by_id[project_id]
