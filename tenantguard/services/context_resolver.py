"""Build the AuthorizationContext for one request.

Resolution never fails.  Missing or bogus evidence only produces a
thinner context and the guard chain decides whether that is enough:

  no identity                       → everything None
  identity, no tenant hint          → identity only
  identity, hint not a valid UUID   → identity only
  identity, hint but no membership  → identity only (hint is dropped)
  identity, org soft-deleted        → identity only
  identity, membership found        → identity + org_id + role

The last row is the only way org_id becomes non-null, which is what
lets guards trust org_id/role without another lookup.
"""

from __future__ import annotations

import logging
from uuid import UUID

from tenantguard.models.context import AuthorizationContext, Identity
from tenantguard.models.user import User
from tenantguard.repos.store import Store

logger = logging.getLogger(__name__)


def parse_org_hint(raw: str | None) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


async def ensure_user(identity: Identity, store: Store) -> None:
    """Create the User row the first time an identity is seen."""
    if await store.users.get_by_id(identity.user_id) is not None:
        return
    if not identity.email:
        logger.debug("Identity %s has no email; user row not provisioned", identity.user_id)
        return
    if await store.users.get_by_email(identity.email) is not None:
        logger.warning(
            "Email already bound to another user; not provisioning user=%s",
            identity.user_id,
        )
        return
    await store.users.add(
        User.new(email=identity.email, name=identity.name, user_id=identity.user_id)
    )
    logger.info("Provisioned user=%s", identity.user_id)


async def resolve_context(
    identity: Identity | None,
    tenant_hint: str | None,
    store: Store,
) -> AuthorizationContext:
    if identity is None:
        return AuthorizationContext(store=store)

    org_id = parse_org_hint(tenant_hint)
    if org_id is None:
        return AuthorizationContext(identity=identity, store=store)

    membership = await store.members.get(org_id, identity.user_id)
    if membership is None:
        logger.debug(
            "Ignoring org hint: user=%s is not a member of org=%s",
            identity.user_id,
            org_id,
        )
        return AuthorizationContext(identity=identity, store=store)

    org = await store.orgs.get_by_id(org_id)
    if org is None or org.deleted_at is not None:
        logger.debug("Ignoring org hint: org=%s is deleted", org_id)
        return AuthorizationContext(identity=identity, store=store)

    return AuthorizationContext(
        identity=identity,
        org_id=membership.org_id,
        role=membership.role,
        store=store,
    )
