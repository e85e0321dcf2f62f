"""Seed data and token helpers shared by the test modules."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import time
from uuid import uuid4

from tenantguard.core.permissions import Role
from tenantguard.models.organization import Membership, Organization
from tenantguard.models.subscription import Subscription
from tenantguard.models.user import User
from tenantguard.repos.store import InMemoryStore, memory_store
from tenantguard.services import token_service
from tenantguard.services.naming import slugify


def run(coro):
    return asyncio.run(coro)


async def add_user(store: InMemoryStore, email: str, name: str = "") -> User:
    user = User.new(email=email, name=name)
    await store.users.add(user)
    return user


async def add_org(
    store: InMemoryStore,
    owner: User | None = None,
    *,
    name: str = "Acme",
    credits: int = 0,
    is_primary: bool = False,
) -> Organization:
    org = Organization.new(
        name=name,
        slug=f"{slugify(name)}-{uuid4().hex[:8]}",
        credits=credits,
        is_primary=is_primary,
    )
    await store.orgs.add(org)
    if owner is not None:
        await store.members.add(Membership(org_id=org.id, user_id=owner.id, role=Role.OWNER))
    return org


async def add_member(
    store: InMemoryStore, org: Organization, user: User, role: Role = Role.MEMBER
) -> Membership:
    membership = Membership(org_id=org.id, user_id=user.id, role=role)
    await store.members.add(membership)
    return membership


async def add_subscription(
    store: InMemoryStore, org: Organization, plan_id: str = "pro", **fields
) -> Subscription:
    sub = Subscription.new(
        org_id=org.id,
        stripe_subscription_id=f"sub_{uuid4().hex[:12]}",
        plan_id=plan_id,
        **fields,
    )
    await store.subscriptions.add(sub)
    return sub


async def _seed_roles(store: InMemoryStore) -> tuple[Organization, dict[str, User]]:
    users = {
        "owner": await add_user(store, "owner@example.com", "Olive Owner"),
        "admin": await add_user(store, "admin@example.com", "Adam Admin"),
        "member": await add_user(store, "member@example.com", "Mia Member"),
        "outsider": await add_user(store, "outsider@example.com", "Otto Outsider"),
        "super_admin": await add_user(store, "root@example.com", "Root"),
    }
    org = await add_org(store, users["owner"], name="Acme", credits=5, is_primary=True)
    await add_member(store, org, users["admin"], Role.ADMIN)
    await add_member(store, org, users["member"], Role.MEMBER)
    return org, users


def seed_org_with_roles(
    store: InMemoryStore = memory_store,
) -> tuple[Organization, dict[str, User]]:
    """One org with an owner, an admin and a member, plus two non-members.

    ``outsider`` has no membership; ``super_admin`` is on the platform
    allow-list but also holds no membership.
    """
    return run(_seed_roles(store))


def mint_token(user: User) -> str:
    return token_service.create_access_token(
        sub=str(user.id), email=user.email, name=user.name
    )


def auth_headers(user: User | None, org: Organization | None = None) -> dict[str, str]:
    headers: dict[str, str] = {}
    if user is not None:
        headers["Authorization"] = f"Bearer {mint_token(user)}"
    if org is not None:
        headers["X-Org-Id"] = str(org.id)
    return headers


def stripe_subscription(
    sub_id: str,
    *,
    price_id: str = "price_pro_test",
    org: Organization | None = None,
    customer: str = "cus_test",
    status: str = "active",
    period_start: int = 1_775_000_000,
    period_end: int = 1_777_600_000,
) -> dict:
    """A subscription in Stripe's JSON shape, periods on the first item."""
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "metadata": {"organizationId": str(org.id)} if org is not None else {},
        "items": {
            "data": [
                {
                    "price": {"id": price_id},
                    "current_period_start": period_start,
                    "current_period_end": period_end,
                }
            ]
        },
    }


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test") -> dict:
    return {"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}}


def stripe_signature(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """``Stripe-Signature`` header value for ``payload``, as Stripe computes it."""
    ts = int(time.time()) if timestamp is None else timestamp
    mac = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256)
    return f"t={ts},v1={mac.hexdigest()}"
