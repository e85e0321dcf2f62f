"""Invite endpoints for the invitee.

The token in the URL is the capability; the caller must also be signed
in as the address the invite was sent to.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from tenantguard.api.dependencies import procedure, set_org_cookie
from tenantguard.core.guards import AccessLevel
from tenantguard.core.permissions import Role
from tenantguard.models.context import AuthenticatedContext
from tenantguard.services import invitation_service

router = APIRouter(prefix="/v1/invites", tags=["invites"])


class SuccessOut(BaseModel):
    success: bool = True


class AcceptOut(BaseModel):
    org_id: UUID
    role: Role


@router.post("/{token}/accept", response_model=AcceptOut)
async def accept_invite(
    token: str,
    response: Response,
    ctx: Annotated[
        AuthenticatedContext, Depends(procedure("invite.accept", AccessLevel.AUTHENTICATED))
    ],
) -> AcceptOut:
    membership = await invitation_service.accept_invite(ctx.store, token, ctx.identity)
    set_org_cookie(response, membership.org_id)
    return AcceptOut(org_id=membership.org_id, role=membership.role)


@router.post("/{token}/decline", response_model=SuccessOut)
async def decline_invite(
    token: str,
    ctx: Annotated[
        AuthenticatedContext, Depends(procedure("invite.decline", AccessLevel.AUTHENTICATED))
    ],
) -> SuccessOut:
    await invitation_service.decline_invite(ctx.store, token, ctx.identity)
    return SuccessOut()
