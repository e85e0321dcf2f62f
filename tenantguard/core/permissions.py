"""Static role → action permission table and the role ordering.

Two different questions are answered here:

  has_permission(role, action)
    Fine-grained: may this role perform this exact action?  Used by
    business rules inside services.

  role_satisfies(actual, required)
    Coarse-grained: is this role at least as strong as the required one?
    Used by the guard chain and require_org_role().

The two are independent on purpose.  MEMBER ranks below ADMIN but the
table, not the rank, decides what each role may do.
"""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class Action(StrEnum):
    ORG_UPDATE = "org:update"
    ORG_DELETE = "org:delete"
    ORG_TRANSFER = "org:transfer"
    MEMBER_INVITE = "member:invite"
    MEMBER_REMOVE = "member:remove"
    MEMBER_UPDATE = "member:update"
    PROJECT_CREATE = "project:create"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"


ROLE_RANK: dict[Role, int] = {
    Role.MEMBER: 0,
    Role.ADMIN: 1,
    Role.OWNER: 2,
}

PERMISSIONS: dict[Role, frozenset[Action]] = {
    Role.OWNER: frozenset(Action),
    Role.ADMIN: frozenset(Action) - {Action.ORG_DELETE, Action.ORG_TRANSFER},
    Role.MEMBER: frozenset({Action.PROJECT_CREATE, Action.PROJECT_UPDATE}),
}


def has_permission(role: Role | str, action: Action | str) -> bool:
    return Action(action) in PERMISSIONS[Role(role)]


def role_satisfies(actual: Role | str, required: Role | str) -> bool:
    return ROLE_RANK[Role(actual)] >= ROLE_RANK[Role(required)]
