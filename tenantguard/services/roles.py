from __future__ import annotations

import logging
from uuid import UUID

from tenantguard.core.errors import InsufficientRoleError, NotAMemberError
from tenantguard.core.permissions import Action, Role, has_permission, role_satisfies
from tenantguard.repos.store import Store

logger = logging.getLogger(__name__)


async def require_org_role(
    store: Store, org_id: UUID, user_id: UUID, min_role: Role
) -> Role:
    """Return the caller's actual role if it is at least ``min_role``.

    The returned role may be higher than requested; callers that care
    about the exact role must inspect it.
    """
    membership = await store.members.get(org_id, user_id)
    if membership is None:
        logger.warning("Access denied: user=%s not a member of org=%s", user_id, org_id)
        raise NotAMemberError()

    if not role_satisfies(membership.role, min_role):
        logger.warning(
            "Access denied: user=%s role=%s required=%s org=%s",
            user_id,
            membership.role,
            min_role,
            org_id,
        )
        raise InsufficientRoleError()

    return membership.role


def require_permission(role: Role, action: Action) -> None:
    """Check the static permission table for an already-resolved role."""
    if not has_permission(role, action):
        logger.warning("Access denied: role=%s lacks action=%s", role, action)
        raise InsufficientRoleError()
