from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Project:
    id: UUID
    name: str
    slug: str
    org_id: UUID
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @staticmethod
    def new(*, name: str, slug: str, org_id: UUID) -> Project:
        return Project(id=uuid4(), name=name, slug=slug, org_id=org_id)
