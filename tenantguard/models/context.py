from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import UUID

from tenantguard.core.permissions import Role

if TYPE_CHECKING:
    from tenantguard.repos.store import Store


@dataclass(frozen=True, slots=True)
class Identity:
    """Verified caller, extracted from a validated session token."""

    user_id: UUID
    email: str | None = None
    name: str = ""


@dataclass(frozen=True, slots=True)
class AuthorizationContext:
    """Everything the guard chain needs, resolved once per request.

    Invariant: org_id is set only when identity is a verified member of
    that organization, and role is that membership's role.
    """

    identity: Identity | None = None
    org_id: UUID | None = None
    role: Role | None = None
    store: Store | Any = None


@dataclass(frozen=True, slots=True)
class AuthenticatedContext:
    identity: Identity
    org_id: UUID | None
    role: Role | None
    store: Store | Any = None

    @property
    def user_id(self) -> UUID:
        return self.identity.user_id


@dataclass(frozen=True, slots=True)
class TenantContext:
    identity: Identity
    org_id: UUID
    role: Role
    store: Store | Any = None

    @property
    def user_id(self) -> UUID:
        return self.identity.user_id
