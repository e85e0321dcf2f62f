from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from tenantguard.core.permissions import Role


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Organization:
    id: UUID
    name: str
    slug: str
    credits: int = 0
    is_primary: bool = False
    deleted_at: datetime | None = None
    last_free_refill_at: datetime | None = None
    credits_reminder_sent: bool = False
    stripe_customer_id: str | None = None
    created_at: datetime = field(default_factory=_now)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @staticmethod
    def new(
        *, name: str, slug: str, credits: int = 0, is_primary: bool = False
    ) -> Organization:
        return Organization(
            id=uuid4(),
            name=name,
            slug=slug,
            credits=credits,
            is_primary=is_primary,
        )


@dataclass(frozen=True, slots=True)
class Membership:
    org_id: UUID
    user_id: UUID
    role: Role
    created_at: datetime = field(default_factory=_now)
