"""Organization invitations.

Creating an invite runs the abuse checks in a fixed order, cheapest and
most specific first:

  1. disposable email domain      -> BadRequest
  2. per-(org, inviter) cooldown  -> PreconditionFailed
  3. pending-invite cap           -> LimitReached
  4. invitee already a member     -> Conflict

The cooldown only starts once an invite is actually stored, so a
rejected attempt never locks the inviter out.  Emails are best effort:
a delivery failure is logged and the invite stands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from tenantguard.core.config import SETTINGS, Limits
from tenantguard.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    LimitReachedError,
    NotFoundError,
    PreconditionFailedError,
)
from tenantguard.core.metrics import GUARD_REJECTIONS
from tenantguard.core.permissions import Role
from tenantguard.models.context import Identity
from tenantguard.models.invite import Invite, InviteStatus, new_invite_token
from tenantguard.models.organization import Membership
from tenantguard.models.user import User
from tenantguard.repos.store import Store
from tenantguard.services import email_service, invite_cooldown
from tenantguard.services.disposable_email import is_disposable_email, is_valid_email
from tenantguard.services.email_service import EmailDeliveryError, EmailSender
from tenantguard.services.invite_cooldown import CooldownStore, cooldown_key
from tenantguard.services.org_service import remove_member

logger = logging.getLogger(__name__)

INVITABLE_ROLES = frozenset({Role.ADMIN, Role.MEMBER})


@dataclass(frozen=True, slots=True)
class InviteView:
    invite: Invite
    inviter: User | None
    invitee_name: str | None


def invite_link(token: str) -> str:
    return f"{SETTINGS.site_url}/invite/{token}"


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def create_invite(
    store: Store,
    org_id: UUID,
    inviter_id: UUID,
    email: str,
    role: Role = Role.MEMBER,
    *,
    cooldown: CooldownStore | None = None,
    sender: EmailSender | None = None,
    limits: Limits | None = None,
    check_disposable: bool | None = None,
    now: datetime | None = None,
) -> Invite:
    limits = limits or SETTINGS.limits
    cooldown = cooldown or invite_cooldown.invite_cooldown
    now = now or datetime.now(UTC)
    if check_disposable is None:
        check_disposable = SETTINGS.check_disposable_emails

    email = normalize_email(email)
    if not is_valid_email(email):
        raise BadRequestError("A valid email address is required.")
    if role not in INVITABLE_ROLES:
        raise BadRequestError("Invites can only grant the Admin or Member role.")

    if check_disposable and is_disposable_email(email):
        GUARD_REJECTIONS.labels(reason="disposable_email").inc()
        logger.info("Rejected disposable invite email for org=%s", org_id)
        raise BadRequestError("Disposable emails cannot be invited to organizations.")

    key = cooldown_key(org_id, inviter_id)
    wait = await cooldown.remaining(key)
    if wait > 0:
        GUARD_REJECTIONS.labels(reason="invite_cooldown").inc()
        raise PreconditionFailedError(
            f"Please wait {wait} seconds before sending another invite."
        )

    await store.invites.expire_stale(org_id, now)
    pending = await store.invites.count_pending(org_id)
    if pending >= limits.max_pending_invites_per_org:
        GUARD_REJECTIONS.labels(reason="invite_cap").inc()
        raise LimitReachedError(
            "Limit reached: Organization can only have "
            f"{limits.max_pending_invites_per_org} pending invites."
        )

    if await store.members.get_by_email(org_id, email) is not None:
        raise ConflictError("User is already a member of this organization.")

    invite = Invite.new(
        email=email,
        org_id=org_id,
        inviter_id=inviter_id,
        role=role,
        ttl_days=limits.invite_ttl_days,
        now=now,
    )
    await store.invites.add(invite)
    await cooldown.start(key, limits.invite_cooldown_seconds)
    logger.info("Invite created invite=%s org=%s role=%s", invite.id, org_id, role)

    await _send_invite_email(store, invite, sender)
    return invite


async def list_invites(
    store: Store, org_id: UUID, *, now: datetime | None = None
) -> list[InviteView]:
    await store.invites.expire_stale(org_id, now or datetime.now(UTC))
    views = []
    for invite in await store.invites.list_by_org(org_id):
        inviter = await store.users.get_by_id(invite.inviter_id)
        invitee = await store.users.get_by_email(invite.email)
        views.append(
            InviteView(
                invite=invite,
                inviter=inviter,
                invitee_name=invitee.name if invitee else None,
            )
        )
    return views


async def _get_in_org(store: Store, org_id: UUID, invite_id: UUID) -> Invite:
    invite = await store.invites.get_by_id(invite_id)
    if invite is None or invite.org_id != org_id:
        raise NotFoundError("Invite not found")
    return invite


async def revoke_invite(store: Store, org_id: UUID, invite_id: UUID) -> None:
    """Revoke a pending invite, or undo an accepted one by removing the member."""
    invite = await _get_in_org(store, org_id, invite_id)

    if invite.status == InviteStatus.ACCEPTED:
        user = await store.users.get_by_email(invite.email)
        if user is None or await store.members.get(org_id, user.id) is None:
            raise NotFoundError("Member not found for accepted invite")
        await remove_member(store, org_id, user.id)
    elif invite.status != InviteStatus.PENDING:
        raise PreconditionFailedError("Invite is no longer pending.")

    await store.invites.set_status(invite.id, InviteStatus.REVOKED)
    logger.info("Invite revoked invite=%s org=%s", invite.id, org_id)


async def resend_invite(
    store: Store,
    org_id: UUID,
    invite_id: UUID,
    *,
    sender: EmailSender | None = None,
    limits: Limits | None = None,
    now: datetime | None = None,
) -> Invite:
    """Issue a fresh token and expiry, then email the new link.

    Reviving an expired invite makes it pending again, so it is held to
    the pending cap like a new one.
    """
    limits = limits or SETTINGS.limits
    now = now or datetime.now(UTC)

    await store.invites.expire_stale(org_id, now)
    invite = await _get_in_org(store, org_id, invite_id)
    if invite.status not in (InviteStatus.PENDING, InviteStatus.EXPIRED):
        raise PreconditionFailedError("Only pending or expired invites can be resent.")

    if invite.status == InviteStatus.EXPIRED:
        pending = await store.invites.count_pending(org_id)
        if pending >= limits.max_pending_invites_per_org:
            GUARD_REJECTIONS.labels(reason="invite_cap").inc()
            raise LimitReachedError(
                "Limit reached: Organization can only have "
                f"{limits.max_pending_invites_per_org} pending invites."
            )

    updated = await store.invites.reissue(
        invite.id, new_invite_token(), now + timedelta(days=limits.invite_ttl_days)
    )
    if updated is None:
        raise NotFoundError("Invite not found")
    logger.info("Invite reissued invite=%s org=%s", invite.id, org_id)

    await _send_invite_email(store, updated, sender)
    return updated


async def delete_invite(store: Store, org_id: UUID, invite_id: UUID) -> None:
    invite = await _get_in_org(store, org_id, invite_id)
    await store.invites.delete(invite.id)
    logger.info("Invite deleted invite=%s org=%s", invite.id, org_id)


async def _get_for_recipient(
    store: Store, token: str, identity: Identity, now: datetime
) -> Invite:
    invite = await store.invites.get_by_token(token)
    if invite is None:
        raise NotFoundError("Invalid invite token.")
    if invite.status != InviteStatus.PENDING:
        raise PreconditionFailedError("Invite is no longer valid.")
    if invite.is_expired(now):
        await store.invites.set_status(invite.id, InviteStatus.EXPIRED)
        raise PreconditionFailedError("Invite has expired.")

    user = await store.users.get_by_id(identity.user_id)
    email = user.email if user is not None else identity.email
    if not email:
        raise NotFoundError("User not found.")
    if normalize_email(invite.email) != normalize_email(email):
        raise ForbiddenError("Invite does not belong to the current user.")
    return invite


async def accept_invite(
    store: Store,
    token: str,
    identity: Identity,
    *,
    limits: Limits | None = None,
    now: datetime | None = None,
) -> Membership:
    """Join the inviting org with the invite's role.

    The member cap is re-checked under the org lock together with the
    insert, so two concurrent accepts cannot push the org over the cap.
    """
    limits = limits or SETTINGS.limits
    now = now or datetime.now(UTC)
    invite = await _get_for_recipient(store, token, identity, now)

    org = await store.orgs.get_by_id(invite.org_id)
    if org is None or org.deleted_at is not None:
        raise NotFoundError("Organization not found")

    async with store.atomic(invite.org_id):
        existing = await store.members.get(invite.org_id, identity.user_id)
        if existing is not None:
            await store.invites.set_status(invite.id, InviteStatus.ACCEPTED)
            return existing

        count = await store.members.count_by_org(invite.org_id)
        if count >= limits.max_members_per_organization:
            GUARD_REJECTIONS.labels(reason="member_cap").inc()
            raise LimitReachedError("Organization member limit reached.")

        membership = Membership(
            org_id=invite.org_id, user_id=identity.user_id, role=invite.role
        )
        await store.members.add(membership)
        await store.invites.set_status(invite.id, InviteStatus.ACCEPTED)

    logger.info(
        "Invite accepted invite=%s org=%s user=%s",
        invite.id,
        invite.org_id,
        identity.user_id,
    )
    return membership


async def decline_invite(
    store: Store, token: str, identity: Identity, *, now: datetime | None = None
) -> None:
    invite = await _get_for_recipient(store, token, identity, now or datetime.now(UTC))
    await store.invites.set_status(invite.id, InviteStatus.DECLINED)
    logger.info("Invite declined invite=%s org=%s", invite.id, invite.org_id)


async def _send_invite_email(
    store: Store, invite: Invite, sender: EmailSender | None
) -> None:
    sender = sender or email_service.email_sender
    org = await store.orgs.get_by_id(invite.org_id)
    inviter = await store.users.get_by_id(invite.inviter_id)
    message = email_service.invite_email(
        to=invite.email,
        org_name=org.name if org else "",
        inviter_name=inviter.name if inviter else "",
        token=invite.token,
        expires_at=invite.expires_at,
    )
    try:
        await sender.send(message)
    except EmailDeliveryError:
        logger.exception("Invite email failed invite=%s", invite.id)
