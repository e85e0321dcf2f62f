"""The static role/action table and the role ordering."""

from __future__ import annotations

import pytest

from tenantguard.core.permissions import (
    PERMISSIONS,
    Action,
    Role,
    has_permission,
    role_satisfies,
)

O, A, M = Role.OWNER, Role.ADMIN, Role.MEMBER

# (action, owner, admin, member)
_TABLE: list[tuple[Action, bool, bool, bool]] = [
    (Action.ORG_UPDATE, True, True, False),
    (Action.ORG_DELETE, True, False, False),
    (Action.ORG_TRANSFER, True, False, False),
    (Action.MEMBER_INVITE, True, True, False),
    (Action.MEMBER_REMOVE, True, True, False),
    (Action.MEMBER_UPDATE, True, True, False),
    (Action.PROJECT_CREATE, True, True, True),
    (Action.PROJECT_UPDATE, True, True, True),
    (Action.PROJECT_DELETE, True, True, False),
]


@pytest.mark.parametrize(
    "action,owner,admin,member", _TABLE, ids=[row[0].value for row in _TABLE]
)
def test_permission_table(action: Action, owner: bool, admin: bool, member: bool) -> None:
    assert has_permission(O, action) is owner
    assert has_permission(A, action) is admin
    assert has_permission(M, action) is member


def test_table_covers_every_action() -> None:
    assert {row[0] for row in _TABLE} == set(Action)


def test_owner_holds_every_permission() -> None:
    assert PERMISSIONS[O] == frozenset(Action)


def test_accepts_plain_strings() -> None:
    assert has_permission("ADMIN", "member:invite") is True
    assert has_permission("MEMBER", "org:delete") is False


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(ValueError):
        has_permission(O, "org:launch-missiles")


_ORDER = [
    (O, O, True),
    (O, A, True),
    (O, M, True),
    (A, O, False),
    (A, A, True),
    (A, M, True),
    (M, O, False),
    (M, A, False),
    (M, M, True),
]


@pytest.mark.parametrize(
    "actual,required,expected",
    _ORDER,
    ids=[f"{a.value}>={r.value}" for a, r, _ in _ORDER],
)
def test_role_ordering(actual: Role, required: Role, expected: bool) -> None:
    assert role_satisfies(actual, required) is expected
