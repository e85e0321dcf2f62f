from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    name: str = ""
    created_at: datetime = field(default_factory=_now)

    @staticmethod
    def new(*, email: str, name: str = "", user_id: UUID | None = None) -> User:
        return User(id=user_id or uuid4(), email=email.strip().lower(), name=name)
