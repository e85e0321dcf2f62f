from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from uuid import UUID, uuid4

from tenantguard.core.permissions import Role


class InviteStatus(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


def new_invite_token() -> str:
    """64 hex chars of CSPRNG output."""
    return secrets.token_hex(32)


@dataclass(frozen=True, slots=True)
class Invite:
    id: UUID
    email: str
    org_id: UUID
    inviter_id: UUID
    role: Role
    token: str
    expires_at: datetime
    status: InviteStatus = InviteStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    @staticmethod
    def new(
        *,
        email: str,
        org_id: UUID,
        inviter_id: UUID,
        role: Role,
        ttl_days: int,
        now: datetime | None = None,
    ) -> Invite:
        created = now or datetime.now(UTC)
        return Invite(
            id=uuid4(),
            email=email,
            org_id=org_id,
            inviter_id=inviter_id,
            role=role,
            token=new_invite_token(),
            expires_at=created + timedelta(days=ttl_days),
            created_at=created,
        )
