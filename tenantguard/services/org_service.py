"""Organization lifecycle and membership rules.

Every cap is checked immediately before the write it protects.  The
checks that guard high-value invariants (member count on add, last
owner on remove, credit transfer on delete) run inside
``store.atomic(...)`` so the check and the write see the same state.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from tenantguard.core.config import SETTINGS, Limits
from tenantguard.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    LimitReachedError,
    NotFoundError,
)
from tenantguard.core.metrics import GUARD_REJECTIONS
from tenantguard.core.permissions import Role
from tenantguard.models.organization import Membership, Organization
from tenantguard.models.subscription import CANCELED
from tenantguard.models.user import User
from tenantguard.repos.store import Store
from tenantguard.services.naming import generate_slug, validate_name
from tenantguard.services.payment_provider import PaymentError, PaymentProvider

logger = logging.getLogger(__name__)


async def create_organization(
    store: Store, user_id: UUID, name: str, *, limits: Limits | None = None
) -> Organization:
    """Create an org with the caller as OWNER.

    The first org a user owns (counting only non-deleted ones) is the
    primary org and gets the free credit grant.  Every other org starts
    at zero, so spinning up extra orgs never yields extra free credits.
    """
    limits = limits or SETTINGS.limits
    validate_name(name)

    # Both counts and the insert run under the user lock, so concurrent
    # creations by one user are serialized.
    async with store.atomic(user_id=user_id):
        owned = await store.members.count_owned_orgs(user_id)
        if owned >= limits.max_organizations_per_user:
            GUARD_REJECTIONS.labels(reason="org_cap").inc()
            logger.warning("Org cap reached for user=%s owned=%d", user_id, owned)
            raise LimitReachedError(
                "Limit reached: You can only create up to "
                f"{limits.max_organizations_per_user} organizations."
            )

        active_owned = await store.members.count_owned_orgs(user_id, active_only=True)
        is_primary = active_owned == 0
        org = Organization.new(
            name=name,
            slug=generate_slug(name, user_id, fallback="org"),
            credits=limits.free_credits if is_primary else 0,
            is_primary=is_primary,
        )
        await store.orgs.add(org)
        await store.members.add(
            Membership(org_id=org.id, user_id=user_id, role=Role.OWNER)
        )

    logger.info(
        "Organization created org=%s owner=%s primary=%s", org.id, user_id, is_primary
    )
    return org


async def list_organizations(
    store: Store, user_id: UUID
) -> list[tuple[Organization, Role]]:
    """Non-deleted orgs the user belongs to, with the user's role in each."""
    result: list[tuple[Organization, Role]] = []
    for membership in await store.members.list_by_user(user_id):
        org = await store.orgs.get_by_id(membership.org_id)
        if org is None or org.deleted_at is not None:
            continue
        result.append((org, membership.role))
    return result


async def get_organization(store: Store, org_id: UUID, user_id: UUID) -> Organization:
    # Non-members get the same answer as for a missing org.
    membership = await store.members.get(org_id, user_id)
    org = await store.orgs.get_by_id(org_id)
    if membership is None or org is None or org.deleted_at is not None:
        raise NotFoundError("Organization not found")
    return org


async def update_organization_name(
    store: Store, org_id: UUID, name: str
) -> Organization:
    validate_name(name)
    org = await store.orgs.update_name(org_id, name)
    if org is None:
        raise NotFoundError("Organization not found")
    return org


async def list_members(
    store: Store, org_id: UUID
) -> list[tuple[Membership, User | None]]:
    members = await store.members.list_by_org(org_id)
    return [(m, await store.users.get_by_id(m.user_id)) for m in members]


async def add_member(
    store: Store,
    org_id: UUID,
    user_id: UUID,
    role: Role = Role.MEMBER,
    *,
    limits: Limits | None = None,
) -> Membership:
    """Add a member, re-checking the member cap under the org lock."""
    limits = limits or SETTINGS.limits
    async with store.atomic(org_id):
        if await store.members.get(org_id, user_id) is not None:
            raise ConflictError("User is already a member of this organization.")
        count = await store.members.count_by_org(org_id)
        if count >= limits.max_members_per_organization:
            GUARD_REJECTIONS.labels(reason="member_cap").inc()
            raise LimitReachedError(
                "Limit reached: Organization can have max "
                f"{limits.max_members_per_organization} members."
            )
        membership = Membership(org_id=org_id, user_id=user_id, role=role)
        await store.members.add(membership)
    return membership


async def update_member_role(
    store: Store, org_id: UUID, target_user_id: UUID, new_role: Role
) -> Membership:
    if new_role == Role.OWNER:
        raise ForbiddenError("Cannot promote to Owner directly.")

    target = await store.members.get(org_id, target_user_id)
    if target is None:
        raise NotFoundError("Member not found")
    if target.role == Role.OWNER:
        raise ForbiddenError("Cannot modify owner role. Use ownership transfer instead.")

    updated = await store.members.update_role(org_id, target_user_id, new_role)
    if updated is None:
        raise NotFoundError("Member not found")
    logger.info(
        "Role changed org=%s user=%s %s -> %s",
        org_id,
        target_user_id,
        target.role,
        new_role,
    )
    return updated


async def remove_member(store: Store, org_id: UUID, target_user_id: UUID) -> None:
    """Remove a member and any invites addressed to their email."""
    async with store.atomic(org_id):
        member = await store.members.get(org_id, target_user_id)
        if member is None:
            raise NotFoundError("Member not found")

        if member.role == Role.OWNER and await store.members.count_owners(org_id) <= 1:
            GUARD_REJECTIONS.labels(reason="last_owner").inc()
            raise ForbiddenError("Cannot remove the last owner of the organization.")

        await store.members.remove(org_id, target_user_id)
        user = await store.users.get_by_id(target_user_id)
        if user is not None:
            await store.invites.delete_by_email(org_id, user.email)

    logger.info("Member removed org=%s user=%s", org_id, target_user_id)


async def delete_organization(
    store: Store,
    org_id: UUID,
    user_id: UUID,
    payments: PaymentProvider,
    *,
    transfer_to: UUID | None = None,
    now: datetime | None = None,
) -> Organization | None:
    """Soft-delete an org, optionally moving its credits first.

    Returns the caller's next active org (for the tenant cookie), if any.
    """
    now = now or datetime.now(UTC)
    if transfer_to is not None and transfer_to == org_id:
        raise BadRequestError("Cannot transfer credits to the same organization")

    lock_ids = (org_id, transfer_to) if transfer_to is not None else (org_id,)
    async with store.atomic(*lock_ids):
        org = await store.orgs.get_by_id(org_id)
        if org is None or org.deleted_at is not None:
            raise NotFoundError("Organization not found")

        if transfer_to is not None:
            target_membership = await store.members.get(transfer_to, user_id)
            if target_membership is None or target_membership.role != Role.OWNER:
                GUARD_REJECTIONS.labels(reason="credit_transfer").inc()
                raise ForbiddenError(
                    "You must be the owner of the target organization to transfer credits."
                )
            target = await store.orgs.get_by_id(transfer_to)
            if target is None or target.deleted_at is not None:
                raise ForbiddenError("Target organization is no longer active.")
            if org.credits > 0:
                await store.orgs.add_credits(transfer_to, org.credits)
                logger.info(
                    "Transferred %d credits org=%s -> org=%s",
                    org.credits,
                    org_id,
                    transfer_to,
                )

        await store.orgs.soft_delete(org_id, now)

    await _cancel_subscription(store, org_id, payments)
    logger.info("Organization soft-deleted org=%s by user=%s", org_id, user_id)

    remaining = await list_organizations(store, user_id)
    return remaining[0][0] if remaining else None


async def _cancel_subscription(
    store: Store, org_id: UUID, payments: PaymentProvider
) -> None:
    subscription = await store.subscriptions.get_by_org(org_id)
    if subscription is None or not subscription.is_active:
        return
    try:
        await payments.cancel_subscription(subscription.stripe_subscription_id)
    except PaymentError:
        logger.exception(
            "Failed to cancel subscription=%s for deleted org=%s",
            subscription.stripe_subscription_id,
            org_id,
        )
        return
    await store.subscriptions.set_status(subscription.id, CANCELED)
