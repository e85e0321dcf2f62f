from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from tenantguard.core.errors import BadRequestError, NotFoundError
from tenantguard.core.permissions import Role
from tenantguard.models.invite import Invite
from tenantguard.models.project import Project
from tenantguard.models.subscription import CANCELED
from tenantguard.repos.store import InMemoryStore
from tenantguard.services import admin_service
from tests.helpers import add_member, add_org, add_subscription, add_user, run


def test_dashboard_stats(store: InMemoryStore) -> None:
    async def scenario():
        owner = await add_user(store, "owner@example.com")
        for i, plan in enumerate(["pro", "pro", "price_proplus_test", "pro", "legacy"]):
            org = await add_org(store, owner, name=f"org{i}")
            sub = await add_subscription(store, org, plan_id=plan)
            if i == 3:
                await store.subscriptions.set_status(sub.id, CANCELED)
        await store.projects.add(Project.new(name="p", slug="p-1", org_id=org.id))
        return await admin_service.dashboard_stats(store)

    stats = run(scenario())
    assert stats.total_users == 1
    assert stats.total_orgs == 5
    assert stats.total_projects == 1
    assert stats.active_pro_count == 2
    assert stats.active_pro_plus_count == 1
    assert stats.pro_revenue == 19.98
    assert stats.pro_plus_revenue == 19.99
    assert stats.total_revenue == 39.97


def test_list_users_paginates_and_counts_memberships(store: InMemoryStore) -> None:
    async def scenario():
        owner = await add_user(store, "owner@example.com", "Olive")
        await add_org(store, owner, name="one")
        await add_org(store, owner, name="two")
        await add_user(store, "bob@example.com", "Bob")
        await add_user(store, "carol@example.com", "Carol")
        page2 = await admin_service.list_users(store, page=2, limit=2)
        olive = await admin_service.list_users(store, query="OLIVE")
        return page2, olive

    page2, olive = run(scenario())
    assert page2.total == 3
    assert page2.total_pages == 2
    assert len(page2.items) == 1
    assert olive.total == 1
    assert olive.items[0].membership_count == 2


@pytest.mark.parametrize(
    "page, limit",
    [(0, 10), (1, 0), (1, admin_service.MAX_PAGE_SIZE + 1)],
    ids=["page-zero", "limit-zero", "limit-over-max"],
)
def test_page_bounds(store: InMemoryStore, page: int, limit: int) -> None:
    with pytest.raises(BadRequestError):
        run(admin_service.list_users(store, page=page, limit=limit))


def test_empty_listing_has_zero_pages(store: InMemoryStore) -> None:
    result = run(admin_service.list_organizations(store))
    assert result.items == []
    assert result.total_pages == 0


def test_list_organizations_skips_deleted(store: InMemoryStore) -> None:
    async def scenario():
        owner = await add_user(store, "owner@example.com")
        member = await add_user(store, "member@example.com")
        live = await add_org(store, owner, name="Live")
        await add_member(store, live, member)
        await add_subscription(store, live)
        gone = await add_org(store, owner, name="Gone")
        await store.orgs.soft_delete(gone.id, datetime.now(UTC))
        return await admin_service.list_organizations(store)

    result = run(scenario())
    assert result.total == 1
    (summary,) = result.items
    assert summary.org.name == "Live"
    assert summary.member_count == 2
    assert summary.project_count == 0
    assert summary.subscription is not None


def test_organization_details(store: InMemoryStore) -> None:
    async def scenario():
        owner = await add_user(store, "owner@example.com", "Olive")
        org = await add_org(store, owner)
        for i in range(12):
            await store.projects.add(Project.new(name=f"p{i}", slug=f"p-{i}", org_id=org.id))
        await store.invites.add(
            Invite.new(
                email="new@example.com",
                org_id=org.id,
                inviter_id=owner.id,
                role=Role.MEMBER,
                ttl_days=7,
            )
        )
        return await admin_service.organization_details(store, org.id)

    details = run(scenario())
    assert [(m.role, u.name) for m, u in details.members] == [(Role.OWNER, "Olive")]
    assert len(details.projects) == admin_service.RECENT_PROJECTS
    assert details.pending_invites == 1
    assert details.subscription is None


def test_organization_details_unknown(store: InMemoryStore) -> None:
    with pytest.raises(NotFoundError):
        run(admin_service.organization_details(store, uuid4()))


def test_list_subscriptions_filters_by_status(store: InMemoryStore) -> None:
    async def scenario():
        owner = await add_user(store, "owner@example.com")
        a = await add_org(store, owner, name="A")
        b = await add_org(store, owner, name="B")
        await add_subscription(store, a)
        sub_b = await add_subscription(store, b)
        await store.subscriptions.set_status(sub_b.id, CANCELED)
        return (
            await admin_service.list_subscriptions(store),
            await admin_service.list_subscriptions(store, status=CANCELED),
        )

    everything, canceled = run(scenario())
    assert everything.total == 2
    assert canceled.total == 1
    assert canceled.items[0].org.name == "B"
