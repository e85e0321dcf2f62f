from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from tenantguard.api.dependencies import procedure
from tenantguard.core.guards import AccessLevel
from tenantguard.core.permissions import Action
from tenantguard.models.context import TenantContext
from tenantguard.models.project import Project
from tenantguard.services import project_service
from tenantguard.services.roles import require_permission

router = APIRouter(prefix="/v1/projects", tags=["projects"])


class ProjectNameIn(BaseModel):
    name: str


class ProjectOut(BaseModel):
    id: UUID
    name: str
    slug: str
    org_id: UUID
    created_at: datetime
    updated_at: datetime

    @classmethod
    def of(cls, project: Project) -> ProjectOut:
        return cls(
            id=project.id,
            name=project.name,
            slug=project.slug,
            org_id=project.org_id,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class SuccessOut(BaseModel):
    success: bool = True


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectNameIn,
    ctx: Annotated[
        TenantContext, Depends(procedure("project.create", AccessLevel.TENANT_SCOPED))
    ],
) -> ProjectOut:
    require_permission(ctx.role, Action.PROJECT_CREATE)
    project = await project_service.create_project(
        ctx.store, ctx.org_id, ctx.user_id, body.name
    )
    return ProjectOut.of(project)


@router.get("", response_model=list[ProjectOut])
async def list_projects(
    ctx: Annotated[
        TenantContext, Depends(procedure("project.list", AccessLevel.TENANT_SCOPED))
    ],
) -> list[ProjectOut]:
    return [ProjectOut.of(p) for p in await project_service.list_projects(ctx.store, ctx.org_id)]


@router.get("/by-slug/{slug}", response_model=ProjectOut)
async def get_project_by_slug(
    slug: str,
    ctx: Annotated[
        TenantContext, Depends(procedure("project.getBySlug", AccessLevel.TENANT_SCOPED))
    ],
) -> ProjectOut:
    project = await project_service.get_project_by_slug(ctx.store, ctx.org_id, slug)
    return ProjectOut.of(project)


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project_name(
    project_id: UUID,
    body: ProjectNameIn,
    ctx: Annotated[
        TenantContext, Depends(procedure("project.updateName", AccessLevel.ELEVATED_ROLE))
    ],
) -> ProjectOut:
    require_permission(ctx.role, Action.PROJECT_UPDATE)
    project = await project_service.update_project_name(
        ctx.store, ctx.org_id, project_id, body.name
    )
    return ProjectOut.of(project)


@router.delete("/{project_id}", response_model=SuccessOut)
async def delete_project(
    project_id: UUID,
    ctx: Annotated[
        TenantContext, Depends(procedure("project.delete", AccessLevel.ELEVATED_ROLE))
    ],
) -> SuccessOut:
    require_permission(ctx.role, Action.PROJECT_DELETE)
    await project_service.delete_project(ctx.store, ctx.org_id, project_id)
    return SuccessOut()
