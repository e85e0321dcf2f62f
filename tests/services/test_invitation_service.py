from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import httpx
import pytest

from tenantguard.core.config import Limits
from tenantguard.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    LimitReachedError,
    NotFoundError,
    PreconditionFailedError,
)
from tenantguard.core.permissions import Role
from tenantguard.models.context import Identity
from tenantguard.models.invite import InviteStatus
from tenantguard.repos.store import InMemoryStore
from tenantguard.services import invitation_service
from tenantguard.services.email_service import InMemoryEmailSender, ResendEmailSender
from tenantguard.services.invite_cooldown import InMemoryCooldownStore
from tests.helpers import add_member, add_org, add_user, run

NO_COOLDOWN = Limits(invite_cooldown_seconds=0)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def sender() -> InMemoryEmailSender:
    return InMemoryEmailSender()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cooldown(clock: FakeClock) -> InMemoryCooldownStore:
    return InMemoryCooldownStore(clock=clock)


@pytest.fixture
def org_setup(store: InMemoryStore):
    async def seed():
        owner = await add_user(store, "owner@example.com", "Olive")
        org = await add_org(store, owner, name="Acme")
        return org, owner

    return run(seed())


def _invite(store, org, owner, email, *, cooldown, sender, limits=NO_COOLDOWN, **kw):
    return invitation_service.create_invite(
        store,
        org.id,
        owner.id,
        email,
        cooldown=cooldown,
        sender=sender,
        limits=limits,
        check_disposable=True,
        **kw,
    )


# ---- create ----


def test_create_invite_stores_and_emails(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    invite = run(_invite(store, org, owner, "  New@Example.COM ", cooldown=cooldown, sender=sender))

    assert invite.email == "new@example.com"
    assert invite.status is InviteStatus.PENDING
    assert invite.role is Role.MEMBER
    assert len(invite.token) == 64
    assert len(sender.outbox) == 1
    message = sender.outbox[0]
    assert message.to == "new@example.com"
    assert "Acme" in message.subject
    assert f"/invite/{invite.token}" in message.text


def test_invite_expires_after_ttl(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    now = datetime(2026, 1, 1, tzinfo=UTC)
    invite = run(
        _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender, now=now)
    )
    assert invite.expires_at == now + timedelta(days=7)


@pytest.mark.parametrize(
    "email",
    ["", "   ", "no-at-sign", "@example.com", "user@localhost"],
    ids=["empty", "blank", "no-at", "no-local-part", "no-dot"],
)
def test_invalid_email_rejected(store, org_setup, cooldown, sender, email) -> None:
    org, owner = org_setup
    with pytest.raises(BadRequestError, match="valid email"):
        run(_invite(store, org, owner, email, cooldown=cooldown, sender=sender))


def test_owner_role_cannot_be_invited(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    with pytest.raises(BadRequestError, match="Admin or Member"):
        run(_invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender, role=Role.OWNER))


def test_disposable_email_rejected(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    with pytest.raises(BadRequestError, match="Disposable emails"):
        run(_invite(store, org, owner, "temp@Mailinator.com", cooldown=cooldown, sender=sender))
    assert sender.outbox == []


def test_disposable_check_runs_before_every_other_rule(
    store, org_setup, cooldown, sender
) -> None:
    org, owner = org_setup
    limits = Limits(invite_cooldown_seconds=60, max_pending_invites_per_org=1)

    async def scenario():
        member = await add_user(store, "x@mailinator.com")
        await add_member(store, org, member)
        # Fills the pending cap and starts the inviter's cooldown.
        await _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender, limits=limits)
        await _invite(
            store, org, owner, "  X@Mailinator.COM ", cooldown=cooldown, sender=sender, limits=limits
        )

    with pytest.raises(BadRequestError, match="Disposable emails"):
        run(scenario())
    assert run(store.invites.count_pending(org.id)) == 1


def test_disposable_check_can_be_disabled(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    invite = run(
        invitation_service.create_invite(
            store,
            org.id,
            owner.id,
            "temp@mailinator.com",
            cooldown=cooldown,
            sender=sender,
            limits=NO_COOLDOWN,
            check_disposable=False,
        )
    )
    assert invite.email == "temp@mailinator.com"


def test_cooldown_blocks_second_invite(store, org_setup, cooldown, sender, clock) -> None:
    org, owner = org_setup
    limits = Limits(invite_cooldown_seconds=60)
    run(_invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender, limits=limits))

    clock.now += 15
    with pytest.raises(PreconditionFailedError, match="Please wait 45 seconds"):
        run(_invite(store, org, owner, "b@example.com", cooldown=cooldown, sender=sender, limits=limits))

    clock.now += 45
    invite = run(
        _invite(store, org, owner, "b@example.com", cooldown=cooldown, sender=sender, limits=limits)
    )
    assert invite.email == "b@example.com"


def test_cooldown_is_per_inviter(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    limits = Limits(invite_cooldown_seconds=60)

    async def scenario():
        admin = await add_user(store, "admin@example.com")
        await add_member(store, org, admin, Role.ADMIN)
        await _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender, limits=limits)
        return await _invite(store, org, admin, "b@example.com", cooldown=cooldown, sender=sender, limits=limits)

    assert run(scenario()).inviter_id != owner.id


def test_rejected_attempt_does_not_start_cooldown(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    limits = Limits(invite_cooldown_seconds=60)
    with pytest.raises(BadRequestError):
        run(_invite(store, org, owner, "x@mailinator.com", cooldown=cooldown, sender=sender, limits=limits))
    invite = run(_invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender, limits=limits))
    assert invite.status is InviteStatus.PENDING


def test_pending_cap(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        for i in range(3):
            await _invite(store, org, owner, f"u{i}@example.com", cooldown=cooldown, sender=sender)
        await _invite(store, org, owner, "u3@example.com", cooldown=cooldown, sender=sender)

    with pytest.raises(LimitReachedError, match="only have 3 pending invites"):
        run(scenario())


def test_revoking_frees_exactly_one_slot(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    def invite(email):
        return run(_invite(store, org, owner, email, cooldown=cooldown, sender=sender))

    first = invite("u0@example.com")
    invite("u1@example.com")
    invite("u2@example.com")
    with pytest.raises(LimitReachedError):
        invite("u3@example.com")

    run(invitation_service.revoke_invite(store, org.id, first.id))
    assert invite("u3@example.com").status is InviteStatus.PENDING
    with pytest.raises(LimitReachedError):
        invite("u4@example.com")


def test_expired_invites_free_up_the_pending_cap(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    past = datetime.now(UTC) - timedelta(days=30)

    async def scenario():
        for i in range(3):
            await _invite(
                store, org, owner, f"u{i}@example.com", cooldown=cooldown, sender=sender, now=past
            )
        fresh = await _invite(store, org, owner, "u3@example.com", cooldown=cooldown, sender=sender)
        return fresh, await store.invites.list_by_org(org.id)

    fresh, invites = run(scenario())
    assert fresh.status is InviteStatus.PENDING
    statuses = sorted(i.status.value for i in invites)
    assert statuses == ["EXPIRED", "EXPIRED", "EXPIRED", "PENDING"]


def test_existing_member_cannot_be_invited(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        member = await add_user(store, "member@example.com")
        await add_member(store, org, member)
        await _invite(store, org, owner, "MEMBER@example.com", cooldown=cooldown, sender=sender)

    with pytest.raises(ConflictError, match="already a member"):
        run(scenario())


def test_email_failure_keeps_the_invite(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    sender.fail = True
    invite = run(_invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender))
    assert run(store.invites.get_by_id(invite.id)) is not None
    assert sender.outbox == []


def test_unreadable_provider_reply_keeps_the_invite(store, org_setup, cooldown) -> None:
    org, owner = org_setup
    resend = ResendEmailSender(
        "re_test",
        "team@example.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"ok")),
    )
    invite = run(_invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=resend))
    assert run(store.invites.get_by_id(invite.id)) is not None


# ---- manage ----


def test_list_includes_inviter_and_invitee_names(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        await add_user(store, "known@example.com", "Known Person")
        await _invite(store, org, owner, "known@example.com", cooldown=cooldown, sender=sender)
        await _invite(store, org, owner, "stranger@example.com", cooldown=cooldown, sender=sender)
        return await invitation_service.list_invites(store, org.id)

    views = {v.invite.email: v for v in run(scenario())}
    assert views["known@example.com"].invitee_name == "Known Person"
    assert views["stranger@example.com"].invitee_name is None
    assert views["known@example.com"].inviter.name == "Olive"


def test_revoke_pending(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        invite = await _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender)
        await invitation_service.revoke_invite(store, org.id, invite.id)
        return await store.invites.get_by_id(invite.id)

    assert run(scenario()).status is InviteStatus.REVOKED


def test_revoke_accepted_removes_member(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        user = await add_user(store, "joiner@example.com")
        invite = await _invite(store, org, owner, "joiner@example.com", cooldown=cooldown, sender=sender)
        await invitation_service.accept_invite(store, invite.token, Identity(user.id, user.email))
        await invitation_service.revoke_invite(store, org.id, invite.id)
        return await store.members.get(org.id, user.id)

    assert run(scenario()) is None


def test_revoke_declined_is_rejected(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        invite = await _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender)
        await store.invites.set_status(invite.id, InviteStatus.DECLINED)
        await invitation_service.revoke_invite(store, org.id, invite.id)

    with pytest.raises(PreconditionFailedError, match="no longer pending"):
        run(scenario())


def test_invites_of_other_orgs_are_not_found(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        other_owner = await add_user(store, "other@example.com")
        other = await add_org(store, other_owner, name="Other")
        invite = await _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender)
        await invitation_service.delete_invite(store, other.id, invite.id)

    with pytest.raises(NotFoundError, match="Invite not found"):
        run(scenario())


def test_resend_issues_fresh_token(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        invite = await _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender)
        resent = await invitation_service.resend_invite(
            store, org.id, invite.id, sender=sender, limits=NO_COOLDOWN
        )
        return invite, resent

    invite, resent = run(scenario())
    assert resent.token != invite.token
    assert resent.status is InviteStatus.PENDING
    assert len(sender.outbox) == 2
    assert resent.token in sender.outbox[-1].text


def test_resend_revives_expired_invite(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    past = datetime.now(UTC) - timedelta(days=30)

    async def scenario():
        invite = await _invite(
            store, org, owner, "a@example.com", cooldown=cooldown, sender=sender, now=past
        )
        return await invitation_service.resend_invite(
            store, org.id, invite.id, sender=sender, limits=NO_COOLDOWN
        )

    resent = run(scenario())
    assert resent.status is InviteStatus.PENDING
    assert resent.expires_at > datetime.now(UTC)


def test_resend_of_expired_respects_pending_cap(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    past = datetime.now(UTC) - timedelta(days=30)

    async def scenario():
        old = await _invite(
            store, org, owner, "old@example.com", cooldown=cooldown, sender=sender, now=past
        )
        for i in range(3):
            await _invite(store, org, owner, f"u{i}@example.com", cooldown=cooldown, sender=sender)
        await invitation_service.resend_invite(
            store, org.id, old.id, sender=sender, limits=NO_COOLDOWN
        )

    with pytest.raises(LimitReachedError):
        run(scenario())


def test_resend_of_accepted_is_rejected(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        invite = await _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender)
        await store.invites.set_status(invite.id, InviteStatus.ACCEPTED)
        await invitation_service.resend_invite(store, org.id, invite.id, sender=sender)

    with pytest.raises(PreconditionFailedError, match="pending or expired"):
        run(scenario())


# ---- accept / decline ----


def test_accept_joins_with_invited_role(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        user = await add_user(store, "joiner@example.com")
        invite = await _invite(
            store, org, owner, "joiner@example.com", cooldown=cooldown, sender=sender, role=Role.ADMIN
        )
        membership = await invitation_service.accept_invite(
            store, invite.token, Identity(user.id, user.email)
        )
        return membership, await store.invites.get_by_id(invite.id)

    membership, invite = run(scenario())
    assert membership.role is Role.ADMIN
    assert invite.status is InviteStatus.ACCEPTED


def test_accept_by_wrong_user_is_forbidden(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        user = await add_user(store, "someone-else@example.com")
        invite = await _invite(store, org, owner, "joiner@example.com", cooldown=cooldown, sender=sender)
        await invitation_service.accept_invite(store, invite.token, Identity(user.id, user.email))

    with pytest.raises(ForbiddenError, match="does not belong"):
        run(scenario())


def test_accept_unknown_token(store) -> None:
    with pytest.raises(NotFoundError, match="Invalid invite token"):
        run(invitation_service.accept_invite(store, "nope", Identity(uuid4(), "a@example.com")))


def test_accept_expired_marks_it_expired(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    past = datetime.now(UTC) - timedelta(days=30)

    async def scenario():
        user = await add_user(store, "joiner@example.com")
        invite = await _invite(
            store, org, owner, "joiner@example.com", cooldown=cooldown, sender=sender, now=past
        )
        try:
            await invitation_service.accept_invite(
                store, invite.token, Identity(user.id, user.email)
            )
        except PreconditionFailedError as e:
            return str(e), await store.invites.get_by_id(invite.id)
        raise AssertionError("expired invite was accepted")

    message, invite = run(scenario())
    assert message == "Invite has expired."
    assert invite.status is InviteStatus.EXPIRED


def test_accept_twice_is_rejected(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        user = await add_user(store, "joiner@example.com")
        invite = await _invite(store, org, owner, "joiner@example.com", cooldown=cooldown, sender=sender)
        identity = Identity(user.id, user.email)
        await invitation_service.accept_invite(store, invite.token, identity)
        await invitation_service.accept_invite(store, invite.token, identity)

    with pytest.raises(PreconditionFailedError, match="no longer valid"):
        run(scenario())


def test_accept_respects_member_cap(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup
    limits = Limits(max_members_per_organization=2, invite_cooldown_seconds=0)

    async def scenario():
        a = await add_user(store, "a@example.com")
        b = await add_user(store, "b@example.com")
        inv_a = await _invite(store, org, owner, "a@example.com", cooldown=cooldown, sender=sender)
        inv_b = await _invite(store, org, owner, "b@example.com", cooldown=cooldown, sender=sender)
        await invitation_service.accept_invite(
            store, inv_a.token, Identity(a.id, a.email), limits=limits
        )
        await invitation_service.accept_invite(
            store, inv_b.token, Identity(b.id, b.email), limits=limits
        )

    with pytest.raises(LimitReachedError, match="member limit reached"):
        run(scenario())


def test_accept_into_deleted_org(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        user = await add_user(store, "joiner@example.com")
        invite = await _invite(store, org, owner, "joiner@example.com", cooldown=cooldown, sender=sender)
        await store.orgs.soft_delete(org.id, datetime.now(UTC))
        await invitation_service.accept_invite(store, invite.token, Identity(user.id, user.email))

    with pytest.raises(NotFoundError, match="Organization not found"):
        run(scenario())


def test_decline(store, org_setup, cooldown, sender) -> None:
    org, owner = org_setup

    async def scenario():
        user = await add_user(store, "joiner@example.com")
        invite = await _invite(store, org, owner, "joiner@example.com", cooldown=cooldown, sender=sender)
        await invitation_service.decline_invite(store, invite.token, Identity(user.id, user.email))
        return await store.invites.get_by_id(invite.id), await store.members.get(org.id, user.id)

    invite, membership = run(scenario())
    assert invite.status is InviteStatus.DECLINED
    assert membership is None
