"""Authorization guard chain.

Each access level is a pure function over an ``AuthorizationContext``:
it either returns a (possibly narrowed) context or raises a
``ProcedureError``.  Guards never touch the store; they trust the
context resolver's invariant that a non-null org_id means verified
membership with the attached role.

Levels build on one another, so the first failing requirement is the
one reported:

    PUBLIC
    AUTHENTICATED   ── UNAUTHORIZED when no identity
    ├─ TENANT_SCOPED    ── FORBIDDEN when no org_id / role
    │   ├─ ELEVATED_ROLE    ── FORBIDDEN unless ADMIN or OWNER
    │   └─ OWNER_ONLY       ── FORBIDDEN unless OWNER
    └─ PLATFORM_ADMIN   ── FORBIDDEN unless email is in the allow-list

An anonymous caller hitting an OWNER_ONLY operation therefore gets
UNAUTHORIZED, never FORBIDDEN.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Any

from tenantguard.core.errors import ErrorKind, ProcedureError
from tenantguard.core.permissions import Role
from tenantguard.models.context import (
    AuthenticatedContext,
    AuthorizationContext,
    TenantContext,
)

Guard = Callable[[Any], Any]


class AccessLevel(StrEnum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    TENANT_SCOPED = "tenant_scoped"
    ELEVATED_ROLE = "elevated_role"
    OWNER_ONLY = "owner_only"
    PLATFORM_ADMIN = "platform_admin"


def chain(*guards: Guard) -> Guard:
    """Compose guards left to right; the first raise short-circuits."""

    def _run(ctx: Any) -> Any:
        for guard in guards:
            ctx = guard(ctx)
        return ctx

    return _run


# ---------------------------------------------------------------------------
# Individual guards
# ---------------------------------------------------------------------------


def public(ctx: AuthorizationContext) -> AuthorizationContext:
    return ctx


def authenticated(ctx: AuthorizationContext) -> AuthenticatedContext:
    if ctx.identity is None:
        raise ProcedureError(ErrorKind.UNAUTHORIZED, "Authentication required")
    return AuthenticatedContext(
        identity=ctx.identity,
        org_id=ctx.org_id,
        role=ctx.role,
        store=ctx.store,
    )


def tenant_scoped(ctx: AuthenticatedContext) -> TenantContext:
    if ctx.org_id is None or ctx.role is None:
        raise ProcedureError(ErrorKind.FORBIDDEN, "Organization context required")
    return TenantContext(
        identity=ctx.identity,
        org_id=ctx.org_id,
        role=ctx.role,
        store=ctx.store,
    )


def elevated_role(ctx: TenantContext) -> TenantContext:
    if ctx.role not in (Role.ADMIN, Role.OWNER):
        raise ProcedureError(ErrorKind.FORBIDDEN, "Admin access required")
    return ctx


def owner_only(ctx: TenantContext) -> TenantContext:
    if ctx.role != Role.OWNER:
        raise ProcedureError(ErrorKind.FORBIDDEN, "Owner access required")
    return ctx


def platform_admin(allow_list: Iterable[str]) -> Guard:
    """Build the allow-list check; an empty list rejects everyone."""
    allowed = frozenset(allow_list)

    def _guard(ctx: AuthenticatedContext) -> AuthenticatedContext:
        email = ctx.identity.email
        if not email or email not in allowed:
            raise ProcedureError(ErrorKind.FORBIDDEN, "Super admin access required")
        return ctx

    return _guard


def guard_for(level: AccessLevel, *, admin_emails: Iterable[str] = ()) -> Guard:
    """Return the composed chain for one access level."""
    if level is AccessLevel.PUBLIC:
        return public
    if level is AccessLevel.AUTHENTICATED:
        return authenticated
    if level is AccessLevel.TENANT_SCOPED:
        return chain(authenticated, tenant_scoped)
    if level is AccessLevel.ELEVATED_ROLE:
        return chain(authenticated, tenant_scoped, elevated_role)
    if level is AccessLevel.OWNER_ONLY:
        return chain(authenticated, tenant_scoped, owner_only)
    if level is AccessLevel.PLATFORM_ADMIN:
        return chain(authenticated, platform_admin(admin_emails))
    raise ValueError(f"unknown access level: {level!r}")
