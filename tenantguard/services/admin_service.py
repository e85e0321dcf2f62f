"""Read-only platform-wide views for super admins."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from tenantguard.core.errors import BadRequestError, NotFoundError
from tenantguard.models.organization import Membership, Organization
from tenantguard.models.project import Project
from tenantguard.models.subscription import Subscription
from tenantguard.models.user import User
from tenantguard.repos.store import Store
from tenantguard.services.billing_service import PRO, PRO_PLUS, find_plan

MAX_PAGE_SIZE = 100
RECENT_PROJECTS = 10


@dataclass(frozen=True, slots=True)
class PageResult:
    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


@dataclass(frozen=True, slots=True)
class DashboardStats:
    total_users: int
    total_orgs: int
    total_projects: int
    active_pro_count: int
    active_pro_plus_count: int
    pro_revenue: float
    pro_plus_revenue: float

    @property
    def total_revenue(self) -> float:
        return round(self.pro_revenue + self.pro_plus_revenue, 2)


@dataclass(frozen=True, slots=True)
class UserSummary:
    user: User
    membership_count: int


@dataclass(frozen=True, slots=True)
class OrgSummary:
    org: Organization
    member_count: int
    project_count: int
    subscription: Subscription | None


@dataclass(frozen=True, slots=True)
class OrgDetails:
    org: Organization
    members: list[tuple[Membership, User | None]] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    subscription: Subscription | None = None
    pending_invites: int = 0


@dataclass(frozen=True, slots=True)
class SubscriptionSummary:
    subscription: Subscription
    org: Organization | None


def _offset(page: int, limit: int) -> int:
    if page < 1:
        raise BadRequestError("page must be at least 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise BadRequestError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return (page - 1) * limit


async def dashboard_stats(store: Store) -> DashboardStats:
    pro_count = pro_plus_count = 0
    for sub in await store.subscriptions.list_active():
        plan = find_plan(sub.plan_id)
        if plan is None:
            continue
        if plan.id == PRO:
            pro_count += 1
        elif plan.id == PRO_PLUS:
            pro_plus_count += 1

    pro_price = float(find_plan(PRO).price)
    pro_plus_price = float(find_plan(PRO_PLUS).price)
    return DashboardStats(
        total_users=await store.users.count(),
        total_orgs=await store.orgs.count(),
        total_projects=await store.projects.count(),
        active_pro_count=pro_count,
        active_pro_plus_count=pro_plus_count,
        pro_revenue=round(pro_count * pro_price, 2),
        pro_plus_revenue=round(pro_plus_count * pro_plus_price, 2),
    )


async def list_users(
    store: Store, *, page: int = 1, limit: int = 10, query: str | None = None
) -> PageResult:
    offset = _offset(page, limit)
    users = await store.users.search(query, offset, limit)
    items = [
        UserSummary(user=u, membership_count=len(await store.members.list_by_user(u.id)))
        for u in users
    ]
    return PageResult(items=items, total=await store.users.count(query), page=page, limit=limit)


async def list_organizations(
    store: Store, *, page: int = 1, limit: int = 10, query: str | None = None
) -> PageResult:
    offset = _offset(page, limit)
    items = []
    for org in await store.orgs.search(query, offset, limit):
        items.append(
            OrgSummary(
                org=org,
                member_count=await store.members.count_by_org(org.id),
                project_count=await store.projects.count_by_org(org.id),
                subscription=await store.subscriptions.get_by_org(org.id),
            )
        )
    return PageResult(items=items, total=await store.orgs.count(query), page=page, limit=limit)


async def organization_details(store: Store, org_id: UUID) -> OrgDetails:
    org = await store.orgs.get_by_id(org_id)
    if org is None:
        raise NotFoundError("Organization not found")

    members = [
        (m, await store.users.get_by_id(m.user_id))
        for m in await store.members.list_by_org(org_id)
    ]
    projects = sorted(
        await store.projects.list_by_org(org_id), key=lambda p: p.created_at, reverse=True
    )
    return OrgDetails(
        org=org,
        members=members,
        projects=projects[:RECENT_PROJECTS],
        subscription=await store.subscriptions.get_by_org(org_id),
        pending_invites=await store.invites.count_pending(org_id),
    )


async def list_subscriptions(
    store: Store, *, page: int = 1, limit: int = 10, status: str | None = None
) -> PageResult:
    offset = _offset(page, limit)
    items = [
        SubscriptionSummary(subscription=s, org=await store.orgs.get_by_id(s.org_id))
        for s in await store.subscriptions.list_page(status, offset, limit)
    ]
    return PageResult(
        items=items, total=await store.subscriptions.count(status), page=page, limit=limit
    )
