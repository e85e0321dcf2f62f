from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from tenantguard.core.config import SETTINGS, Limits
from tenantguard.core.errors import LimitReachedError, NotFoundError
from tenantguard.core.metrics import GUARD_REJECTIONS
from tenantguard.models.project import Project
from tenantguard.repos.store import Store
from tenantguard.services.naming import generate_slug, validate_name

logger = logging.getLogger(__name__)


async def create_project(
    store: Store,
    org_id: UUID,
    user_id: UUID,
    name: str,
    *,
    limits: Limits | None = None,
) -> Project:
    limits = limits or SETTINGS.limits
    validate_name(name)

    count = await store.projects.count_by_org(org_id)
    if count >= limits.max_projects_per_organization:
        GUARD_REJECTIONS.labels(reason="project_cap").inc()
        raise LimitReachedError(
            "Limit reached: Organization can only have up to "
            f"{limits.max_projects_per_organization} projects."
        )

    project = Project.new(
        name=name, slug=generate_slug(name, user_id, fallback="project"), org_id=org_id
    )
    await store.projects.add(project)
    logger.info("Project created project=%s org=%s", project.id, org_id)
    return project


async def list_projects(store: Store, org_id: UUID) -> list[Project]:
    """Most recently updated first."""
    return await store.projects.list_by_org(org_id)


async def get_project_by_slug(store: Store, org_id: UUID, slug: str) -> Project:
    project = await store.projects.get_by_slug(slug)
    if project is None or project.org_id != org_id:
        raise NotFoundError("Project not found")
    return project


async def _get_in_org(store: Store, org_id: UUID, project_id: UUID) -> Project:
    # Projects in other orgs are reported as missing.
    project = await store.projects.get_by_id(project_id)
    if project is None or project.org_id != org_id:
        raise NotFoundError("Project not found")
    return project


async def update_project_name(
    store: Store, org_id: UUID, project_id: UUID, name: str
) -> Project:
    validate_name(name)
    await _get_in_org(store, org_id, project_id)
    updated = await store.projects.update_name(project_id, name, datetime.now(UTC))
    if updated is None:
        raise NotFoundError("Project not found")
    return updated


async def delete_project(store: Store, org_id: UUID, project_id: UUID) -> None:
    await _get_in_org(store, org_id, project_id)
    await store.projects.delete(project_id)
    logger.info("Project deleted project=%s org=%s", project_id, org_id)
