"""Organization, membership and invitation endpoints.

``/v1/orgs/current/...`` operates on the caller's active organization,
taken from the ``X-Org-Id`` header or the ``current-org-id`` cookie and
verified against the caller's memberships before any guard runs.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from tenantguard.api.dependencies import (
    ORG_COOKIE,
    get_payment_provider,
    procedure,
    set_org_cookie,
)
from tenantguard.core.guards import AccessLevel
from tenantguard.core.permissions import Action, Role
from tenantguard.models.context import AuthenticatedContext, TenantContext
from tenantguard.models.invite import Invite
from tenantguard.models.organization import Organization
from tenantguard.services import invitation_service, org_service
from tenantguard.services.payment_provider import PaymentProvider
from tenantguard.services.roles import require_org_role, require_permission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/orgs", tags=["orgs"])

# --- Pydantic schemas ---


class OrgNameIn(BaseModel):
    name: str


class OrgOut(BaseModel):
    id: UUID
    name: str
    slug: str
    credits: int
    is_primary: bool
    created_at: datetime
    role: Role | None = None

    @classmethod
    def of(cls, org: Organization, role: Role | None = None) -> OrgOut:
        return cls(
            id=org.id,
            name=org.name,
            slug=org.slug,
            credits=org.credits,
            is_primary=org.is_primary,
            created_at=org.created_at,
            role=role,
        )


class MemberOut(BaseModel):
    user_id: UUID
    email: str | None
    name: str | None
    role: Role
    created_at: datetime


class UpdateRoleIn(BaseModel):
    role: Role


class InviteIn(BaseModel):
    email: str
    role: Role = Role.MEMBER


class InviteOut(BaseModel):
    id: UUID
    email: str
    role: Role
    status: str
    expires_at: datetime
    created_at: datetime
    link: str | None = None
    inviter_name: str | None = None
    invitee_name: str | None = None

    @classmethod
    def of(cls, invite: Invite, **extra) -> InviteOut:
        return cls(
            id=invite.id,
            email=invite.email,
            role=invite.role,
            status=invite.status.value,
            expires_at=invite.expires_at,
            created_at=invite.created_at,
            **extra,
        )


class DeleteOrgIn(BaseModel):
    transfer_to_org_id: UUID | None = None


class DeleteOrgOut(BaseModel):
    success: bool = True
    next_org_id: UUID | None = None


class SuccessOut(BaseModel):
    success: bool = True


# --- Organizations ---


@router.post("", response_model=OrgOut, status_code=status.HTTP_201_CREATED)
async def create_org(
    body: OrgNameIn,
    response: Response,
    ctx: Annotated[
        AuthenticatedContext, Depends(procedure("org.create", AccessLevel.AUTHENTICATED))
    ],
) -> OrgOut:
    """Create an organization; the caller becomes OWNER and switches to it."""
    org = await org_service.create_organization(ctx.store, ctx.user_id, body.name)
    set_org_cookie(response, org.id)
    return OrgOut.of(org, Role.OWNER)


@router.get("", response_model=list[OrgOut])
async def list_orgs(
    ctx: Annotated[
        AuthenticatedContext, Depends(procedure("org.list", AccessLevel.AUTHENTICATED))
    ],
) -> list[OrgOut]:
    orgs = await org_service.list_organizations(ctx.store, ctx.user_id)
    return [OrgOut.of(org, role) for org, role in orgs]


@router.patch("/current", response_model=OrgOut)
async def update_org_name(
    body: OrgNameIn,
    ctx: Annotated[
        TenantContext, Depends(procedure("org.updateName", AccessLevel.ELEVATED_ROLE))
    ],
) -> OrgOut:
    require_permission(ctx.role, Action.ORG_UPDATE)
    org = await org_service.update_organization_name(ctx.store, ctx.org_id, body.name)
    return OrgOut.of(org, ctx.role)


@router.post("/current/delete", response_model=DeleteOrgOut)
async def delete_org(
    body: DeleteOrgIn,
    response: Response,
    ctx: Annotated[TenantContext, Depends(procedure("org.delete", AccessLevel.OWNER_ONLY))],
    payments: Annotated[PaymentProvider, Depends(get_payment_provider)],
) -> DeleteOrgOut:
    """Soft-delete the current org, optionally moving its credits first."""
    require_permission(ctx.role, Action.ORG_DELETE)
    if body.transfer_to_org_id is not None:
        require_permission(ctx.role, Action.ORG_TRANSFER)

    next_org = await org_service.delete_organization(
        ctx.store,
        ctx.org_id,
        ctx.user_id,
        payments,
        transfer_to=body.transfer_to_org_id,
    )
    if next_org is None:
        response.delete_cookie(ORG_COOKIE)
        return DeleteOrgOut()
    set_org_cookie(response, next_org.id)
    return DeleteOrgOut(next_org_id=next_org.id)


# --- Members ---


@router.get("/current/members", response_model=list[MemberOut])
async def list_members(
    ctx: Annotated[
        TenantContext, Depends(procedure("org.listMembers", AccessLevel.TENANT_SCOPED))
    ],
) -> list[MemberOut]:
    members = await org_service.list_members(ctx.store, ctx.org_id)
    return [
        MemberOut(
            user_id=m.user_id,
            email=user.email if user else None,
            name=user.name if user else None,
            role=m.role,
            created_at=m.created_at,
        )
        for m, user in members
    ]


@router.patch("/current/members/{user_id}", response_model=MemberOut)
async def update_member_role(
    user_id: UUID,
    body: UpdateRoleIn,
    ctx: Annotated[
        TenantContext, Depends(procedure("org.updateMemberRole", AccessLevel.ELEVATED_ROLE))
    ],
) -> MemberOut:
    require_permission(ctx.role, Action.MEMBER_UPDATE)
    membership = await org_service.update_member_role(
        ctx.store, ctx.org_id, user_id, body.role
    )
    user = await ctx.store.users.get_by_id(user_id)
    return MemberOut(
        user_id=membership.user_id,
        email=user.email if user else None,
        name=user.name if user else None,
        role=membership.role,
        created_at=membership.created_at,
    )


@router.delete("/current/members/{user_id}", response_model=SuccessOut)
async def remove_member(
    user_id: UUID,
    ctx: Annotated[
        TenantContext, Depends(procedure("org.removeMember", AccessLevel.ELEVATED_ROLE))
    ],
) -> SuccessOut:
    require_permission(ctx.role, Action.MEMBER_REMOVE)
    await org_service.remove_member(ctx.store, ctx.org_id, user_id)
    return SuccessOut()


# --- Invites ---


@router.post("/current/invites", response_model=InviteOut, status_code=status.HTTP_201_CREATED)
async def invite_member(
    body: InviteIn,
    ctx: Annotated[
        TenantContext, Depends(procedure("org.inviteMember", AccessLevel.ELEVATED_ROLE))
    ],
) -> InviteOut:
    require_permission(ctx.role, Action.MEMBER_INVITE)
    invite = await invitation_service.create_invite(
        ctx.store, ctx.org_id, ctx.user_id, body.email, body.role
    )
    return InviteOut.of(invite, link=invitation_service.invite_link(invite.token))


@router.get("/current/invites", response_model=list[InviteOut])
async def list_invites(
    ctx: Annotated[
        TenantContext, Depends(procedure("org.getInvites", AccessLevel.ELEVATED_ROLE))
    ],
) -> list[InviteOut]:
    views = await invitation_service.list_invites(ctx.store, ctx.org_id)
    return [
        InviteOut.of(
            v.invite,
            inviter_name=v.inviter.name if v.inviter else None,
            invitee_name=v.invitee_name,
        )
        for v in views
    ]


@router.post("/current/invites/{invite_id}/revoke", response_model=SuccessOut)
async def revoke_invite(
    invite_id: UUID,
    ctx: Annotated[
        TenantContext, Depends(procedure("org.revokeInvite", AccessLevel.ELEVATED_ROLE))
    ],
) -> SuccessOut:
    require_permission(ctx.role, Action.MEMBER_INVITE)
    await invitation_service.revoke_invite(ctx.store, ctx.org_id, invite_id)
    return SuccessOut()


@router.post("/current/invites/{invite_id}/resend", response_model=InviteOut)
async def resend_invite(
    invite_id: UUID,
    ctx: Annotated[
        TenantContext, Depends(procedure("org.resendInvite", AccessLevel.ELEVATED_ROLE))
    ],
) -> InviteOut:
    require_permission(ctx.role, Action.MEMBER_INVITE)
    invite = await invitation_service.resend_invite(ctx.store, ctx.org_id, invite_id)
    return InviteOut.of(invite, link=invitation_service.invite_link(invite.token))


@router.delete("/current/invites/{invite_id}", response_model=SuccessOut)
async def delete_invite(
    invite_id: UUID,
    ctx: Annotated[
        TenantContext, Depends(procedure("org.deleteInvite", AccessLevel.ELEVATED_ROLE))
    ],
) -> SuccessOut:
    require_permission(ctx.role, Action.MEMBER_INVITE)
    await invitation_service.delete_invite(ctx.store, ctx.org_id, invite_id)
    return SuccessOut()


# Registered after the /current routes so "current" is never parsed as an id.


@router.get("/{org_id}", response_model=OrgOut)
async def get_org(
    org_id: UUID,
    ctx: Annotated[
        AuthenticatedContext, Depends(procedure("org.getById", AccessLevel.AUTHENTICATED))
    ],
) -> OrgOut:
    """Any member may read; everyone else gets 404."""
    org = await org_service.get_organization(ctx.store, org_id, ctx.user_id)
    membership = await ctx.store.members.get(org_id, ctx.user_id)
    return OrgOut.of(org, membership.role if membership else None)


@router.post("/{org_id}/switch", response_model=OrgOut)
async def switch_org(
    org_id: UUID,
    response: Response,
    ctx: Annotated[
        AuthenticatedContext, Depends(procedure("org.switch", AccessLevel.AUTHENTICATED))
    ],
) -> OrgOut:
    role = await require_org_role(ctx.store, org_id, ctx.user_id, Role.MEMBER)
    org = await org_service.get_organization(ctx.store, org_id, ctx.user_id)
    set_org_cookie(response, org.id)
    logger.info("User=%s switched to org=%s", ctx.user_id, org.id)
    return OrgOut.of(org, role)
