from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

ACTIVE = "active"
CANCELED = "canceled"


@dataclass(frozen=True, slots=True)
class Subscription:
    """External-plan linkage for one organization (at most one per org)."""

    id: UUID
    org_id: UUID
    stripe_subscription_id: str
    plan_id: str
    status: str = ACTIVE  # mirrors the payment provider: active|canceled|past_due|...
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    period_end_reminder_sent: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    @staticmethod
    def new(
        *,
        org_id: UUID,
        stripe_subscription_id: str,
        plan_id: str,
        current_period_start: datetime | None = None,
        current_period_end: datetime | None = None,
    ) -> Subscription:
        return Subscription(
            id=uuid4(),
            org_id=org_id,
            stripe_subscription_id=stripe_subscription_id,
            plan_id=plan_id,
            current_period_start=current_period_start,
            current_period_end=current_period_end,
        )
