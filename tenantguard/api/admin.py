"""Super-admin endpoints.

Access is by exact email match against ``SUPER_ADMIN_EMAILS``; tenant
roles play no part.  Everything here is read-only.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from tenantguard.api.dependencies import procedure
from tenantguard.core.guards import AccessLevel
from tenantguard.core.permissions import Role
from tenantguard.models.context import AuthenticatedContext
from tenantguard.models.subscription import Subscription
from tenantguard.services import admin_service
from tenantguard.services.admin_service import MAX_PAGE_SIZE, PageResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)]


def _admin(name: str):
    return procedure(name, AccessLevel.PLATFORM_ADMIN)


# --- Pydantic schemas ---


class StatsOut(BaseModel):
    total_users: int
    total_orgs: int
    total_projects: int
    active_pro_count: int
    active_pro_plus_count: int
    pro_revenue: float
    pro_plus_revenue: float
    total_revenue: float


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def of(cls, result: PageResult) -> PageMeta:
        return cls(
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        )


class AdminUserOut(BaseModel):
    id: UUID
    email: str
    name: str
    created_at: datetime
    membership_count: int


class UsersPage(PageMeta):
    users: list[AdminUserOut]


class SubscriptionBrief(BaseModel):
    plan_id: str
    status: str

    @classmethod
    def of(cls, sub: Subscription | None) -> SubscriptionBrief | None:
        return cls(plan_id=sub.plan_id, status=sub.status) if sub else None


class AdminOrgOut(BaseModel):
    id: UUID
    name: str
    slug: str
    credits: int
    created_at: datetime
    member_count: int
    project_count: int
    subscription: SubscriptionBrief | None


class OrgsPage(PageMeta):
    organizations: list[AdminOrgOut]


class AdminMemberOut(BaseModel):
    user_id: UUID
    email: str | None
    name: str | None
    role: Role
    created_at: datetime


class AdminProjectOut(BaseModel):
    id: UUID
    name: str
    slug: str
    created_at: datetime


class SubscriptionDetail(BaseModel):
    stripe_subscription_id: str
    plan_id: str
    status: str
    current_period_end: datetime | None
    created_at: datetime


class OrgDetailsOut(BaseModel):
    id: UUID
    name: str
    slug: str
    credits: int
    is_primary: bool
    deleted_at: datetime | None
    stripe_customer_id: str | None
    created_at: datetime
    members: list[AdminMemberOut]
    projects: list[AdminProjectOut]
    subscription: SubscriptionDetail | None
    pending_invites: int


class OrgBrief(BaseModel):
    id: UUID
    name: str


class AdminSubscriptionOut(SubscriptionDetail):
    organization: OrgBrief | None


class SubscriptionsPage(PageMeta):
    subscriptions: list[AdminSubscriptionOut]


# --- Endpoints ---


@router.get("/stats", response_model=StatsOut)
async def dashboard_stats(
    ctx: Annotated[AuthenticatedContext, Depends(_admin("admin.getDashboardStats"))],
) -> StatsOut:
    stats = await admin_service.dashboard_stats(ctx.store)
    return StatsOut(
        total_users=stats.total_users,
        total_orgs=stats.total_orgs,
        total_projects=stats.total_projects,
        active_pro_count=stats.active_pro_count,
        active_pro_plus_count=stats.active_pro_plus_count,
        pro_revenue=stats.pro_revenue,
        pro_plus_revenue=stats.pro_plus_revenue,
        total_revenue=stats.total_revenue,
    )


@router.get("/users", response_model=UsersPage)
async def list_users(
    ctx: Annotated[AuthenticatedContext, Depends(_admin("admin.listUsers"))],
    page: Page = 1,
    limit: Limit = 10,
    query: str | None = None,
) -> UsersPage:
    logger.info("Admin user list requested by user=%s", ctx.user_id)
    result = await admin_service.list_users(ctx.store, page=page, limit=limit, query=query)
    return UsersPage(
        **PageMeta.of(result).model_dump(),
        users=[
            AdminUserOut(
                id=s.user.id,
                email=s.user.email,
                name=s.user.name,
                created_at=s.user.created_at,
                membership_count=s.membership_count,
            )
            for s in result.items
        ],
    )


@router.get("/organizations", response_model=OrgsPage)
async def list_organizations(
    ctx: Annotated[AuthenticatedContext, Depends(_admin("admin.listOrganizations"))],
    page: Page = 1,
    limit: Limit = 10,
    query: str | None = None,
) -> OrgsPage:
    result = await admin_service.list_organizations(
        ctx.store, page=page, limit=limit, query=query
    )
    return OrgsPage(
        **PageMeta.of(result).model_dump(),
        organizations=[
            AdminOrgOut(
                id=s.org.id,
                name=s.org.name,
                slug=s.org.slug,
                credits=s.org.credits,
                created_at=s.org.created_at,
                member_count=s.member_count,
                project_count=s.project_count,
                subscription=SubscriptionBrief.of(s.subscription),
            )
            for s in result.items
        ],
    )


def _subscription_detail(sub: Subscription) -> dict:
    return {
        "stripe_subscription_id": sub.stripe_subscription_id,
        "plan_id": sub.plan_id,
        "status": sub.status,
        "current_period_end": sub.current_period_end,
        "created_at": sub.created_at,
    }


@router.get("/organizations/{org_id}", response_model=OrgDetailsOut)
async def organization_details(
    org_id: UUID,
    ctx: Annotated[AuthenticatedContext, Depends(_admin("admin.getOrganizationDetails"))],
) -> OrgDetailsOut:
    details = await admin_service.organization_details(ctx.store, org_id)
    org = details.org
    return OrgDetailsOut(
        id=org.id,
        name=org.name,
        slug=org.slug,
        credits=org.credits,
        is_primary=org.is_primary,
        deleted_at=org.deleted_at,
        stripe_customer_id=org.stripe_customer_id,
        created_at=org.created_at,
        members=[
            AdminMemberOut(
                user_id=m.user_id,
                email=user.email if user else None,
                name=user.name if user else None,
                role=m.role,
                created_at=m.created_at,
            )
            for m, user in details.members
        ],
        projects=[
            AdminProjectOut(id=p.id, name=p.name, slug=p.slug, created_at=p.created_at)
            for p in details.projects
        ],
        subscription=(
            SubscriptionDetail(**_subscription_detail(details.subscription))
            if details.subscription
            else None
        ),
        pending_invites=details.pending_invites,
    )


@router.get("/subscriptions", response_model=SubscriptionsPage)
async def list_subscriptions(
    ctx: Annotated[AuthenticatedContext, Depends(_admin("admin.listSubscriptions"))],
    page: Page = 1,
    limit: Limit = 10,
    status: str | None = None,
) -> SubscriptionsPage:
    result = await admin_service.list_subscriptions(
        ctx.store, page=page, limit=limit, status=status
    )
    return SubscriptionsPage(
        **PageMeta.of(result).model_dump(),
        subscriptions=[
            AdminSubscriptionOut(
                **_subscription_detail(s.subscription),
                organization=OrgBrief(id=s.org.id, name=s.org.name) if s.org else None,
            )
            for s in result.items
        ],
    )
