"""Scheduled maintenance jobs.

Run from the ``/cron/*`` endpoints, normally once a day:

  daily-maintenance: free monthly refill, then purge of long-deleted orgs
  notify:            low-credit alerts and subscription renewal reminders

Each job re-reads current state and only touches rows whose predicate
still holds, so running a job twice in a row changes nothing the second
time.  Jobs accept ``now`` so tests can move the clock.
"""

from __future__ import annotations

import calendar
import functools
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from tenantguard.core.config import SETTINGS, Limits
from tenantguard.core.metrics import MAINTENANCE_DURATION, MAINTENANCE_ROWS
from tenantguard.core.permissions import Role
from tenantguard.models.organization import Organization
from tenantguard.models.user import User
from tenantguard.repos.store import Store
from tenantguard.services import email_service
from tenantguard.services.billing_service import find_plan
from tenantguard.services.email_service import EmailDeliveryError, EmailSender

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MaintenanceResult:
    orgs_refilled: int
    orgs_purged: int


@dataclass(frozen=True, slots=True)
class NotifyResult:
    reminders_reset: int
    credit_alerts_sent: int
    renewal_reminders_sent: int
    renewal_candidates: int


def subtract_month(dt: datetime) -> datetime:
    """Same wall-clock time one calendar month earlier, day clamped."""
    year, month = (dt.year, dt.month - 1) if dt.month > 1 else (dt.year - 1, 12)
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _run_metered(job: str):
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return await fn(*args, **kwargs)
            finally:
                MAINTENANCE_DURATION.labels(job=job).observe(time.perf_counter() - start)

        return wrapper

    return decorator


async def _refill_eligible(
    store: Store, org: Organization, cutoff: datetime, limits: Limits
) -> bool:
    if not org.is_primary or org.deleted_at is not None:
        return False
    if org.credits >= limits.free_credits:
        return False
    anchor = org.last_free_refill_at or org.created_at
    if anchor > cutoff:
        return False
    subscription = await store.subscriptions.get_by_org(org.id)
    return subscription is None or not subscription.is_active


@_run_metered("free_refill")
async def refill_free_credits(
    store: Store, *, now: datetime | None = None, limits: Limits | None = None
) -> int:
    """Top primary orgs without a paid plan back up to the free grant.

    Eligible once a calendar month has passed since the last refill, or
    since creation for orgs never refilled.
    """
    limits = limits or SETTINGS.limits
    now = now or datetime.now(UTC)
    cutoff = subtract_month(now)

    refilled = 0
    for org in await store.orgs.list_active():
        if not await _refill_eligible(store, org, cutoff, limits):
            continue
        if await store.orgs.refill_credits(org.id, limits.free_credits, now):
            refilled += 1
            logger.info(
                "Free refill org=%s credits %d -> %d", org.id, org.credits, limits.free_credits
            )

    MAINTENANCE_ROWS.labels(job="free_refill").inc(refilled)
    return refilled


@_run_metered("purge")
async def purge_deleted_organizations(
    store: Store, *, now: datetime | None = None, limits: Limits | None = None
) -> int:
    limits = limits or SETTINGS.limits
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(days=limits.purge_after_days)

    purged = 0
    for org in await store.orgs.list_deleted_before(cutoff):
        if await store.orgs.hard_delete(org.id):
            purged += 1
            logger.info("Purged org=%s deleted_at=%s", org.id, org.deleted_at.isoformat())

    MAINTENANCE_ROWS.labels(job="purge").inc(purged)
    return purged


async def run_daily_maintenance(
    store: Store, *, now: datetime | None = None, limits: Limits | None = None
) -> MaintenanceResult:
    now = now or datetime.now(UTC)
    result = MaintenanceResult(
        orgs_refilled=await refill_free_credits(store, now=now, limits=limits),
        orgs_purged=await purge_deleted_organizations(store, now=now, limits=limits),
    )
    logger.info(
        "Daily maintenance done refilled=%d purged=%d",
        result.orgs_refilled,
        result.orgs_purged,
    )
    return result


async def _first_owner(store: Store, org: Organization) -> User | None:
    for membership in await store.members.list_by_org(org.id):
        if membership.role == Role.OWNER:
            return await store.users.get_by_id(membership.user_id)
    return None


@_run_metered("credit_alerts")
async def send_low_credit_alerts(
    store: Store, *, sender: EmailSender | None = None, limits: Limits | None = None
) -> tuple[int, int]:
    """Alert each org once per downward crossing of the threshold.

    Returns ``(flags_reset, alerts_sent)``.  The sent flag is cleared for
    orgs back above the threshold, and only set after a successful send
    so a failed email is retried on the next run.
    """
    limits = limits or SETTINGS.limits
    sender = sender or email_service.email_sender
    threshold = limits.credit_reminder_threshold

    reset = sent = 0
    for org in await store.orgs.list_active():
        if org.credits > threshold:
            if org.credits_reminder_sent:
                await store.orgs.set_reminder_sent(org.id, False)
                reset += 1
            continue
        if org.credits_reminder_sent:
            continue

        owner = await _first_owner(store, org)
        if owner is None:
            continue
        message = email_service.low_credits_email(
            to=owner.email,
            name=owner.name or org.name,
            org_name=org.name,
            credits_remaining=org.credits,
        )
        try:
            await sender.send(message)
        except EmailDeliveryError:
            logger.warning("Low-credit email failed org=%s", org.id, exc_info=True)
            continue
        await store.orgs.set_reminder_sent(org.id, True)
        sent += 1

    MAINTENANCE_ROWS.labels(job="credit_alerts").inc(sent)
    return reset, sent


@_run_metered("renewal_reminders")
async def send_renewal_reminders(
    store: Store,
    *,
    now: datetime | None = None,
    sender: EmailSender | None = None,
    limits: Limits | None = None,
) -> tuple[int, int]:
    """Remind owners once when an active plan's period end is near.

    Returns ``(candidates, reminders_sent)``.
    """
    limits = limits or SETTINGS.limits
    sender = sender or email_service.email_sender
    now = now or datetime.now(UTC)
    horizon = now + timedelta(days=limits.renewal_reminder_days)

    candidates = sent = 0
    for sub in await store.subscriptions.list_active():
        end = sub.current_period_end
        if end is None or not now <= end <= horizon:
            continue
        org = await store.orgs.get_by_id(sub.org_id)
        if org is None or org.deleted_at is not None:
            continue
        candidates += 1
        if sub.period_end_reminder_sent:
            continue

        owner = await _first_owner(store, org)
        if owner is None:
            continue
        plan = find_plan(sub.plan_id)
        message = email_service.renewal_reminder_email(
            to=owner.email,
            name=owner.name or org.name,
            org_name=org.name,
            plan_title=plan.title if plan else None,
            period_end=end,
            credits_remaining=org.credits,
        )
        try:
            await sender.send(message)
        except EmailDeliveryError:
            logger.warning("Renewal reminder failed subscription=%s", sub.id, exc_info=True)
            continue
        await store.subscriptions.set_reminder_sent(sub.id, True)
        sent += 1

    MAINTENANCE_ROWS.labels(job="renewal_reminders").inc(sent)
    return candidates, sent


async def run_notifications(
    store: Store,
    *,
    now: datetime | None = None,
    sender: EmailSender | None = None,
    limits: Limits | None = None,
) -> NotifyResult:
    candidates, renewals = await send_renewal_reminders(
        store, now=now, sender=sender, limits=limits
    )
    reset, alerts = await send_low_credit_alerts(store, sender=sender, limits=limits)
    result = NotifyResult(
        reminders_reset=reset,
        credit_alerts_sent=alerts,
        renewal_reminders_sent=renewals,
        renewal_candidates=candidates,
    )
    logger.info(
        "Notify done renewals=%d/%d credit_alerts=%d resets=%d",
        renewals,
        candidates,
        alerts,
        reset,
    )
    return result
