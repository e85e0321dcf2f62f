"""Mirror Stripe billing events into organizations and subscriptions.

Event                          Effect
-----------------------------  ----------------------------------------------
checkout.session.completed     link the Stripe customer to the org, save the
                               subscription row
invoice.paid                   save the subscription row, add the plan's
                               credits, clear the low-credit reminder flag
customer.subscription.updated  copy plan, status and period onto the row
customer.subscription.deleted  copy the final status onto the row

``invoice.paid`` is the only place credits are added.  When it cannot be
tied to an organization it raises, the endpoint answers 500 and Stripe
retries, which covers the invoice arriving before the checkout event.
Every other unmatched event is logged and acknowledged.

Event objects are plain dicts in Stripe's JSON shape.  Period bounds are
read from the subscription itself or, on newer API versions, from its
first item.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime
from uuid import UUID

from tenantguard.core.errors import ErrorKind, ProcedureError
from tenantguard.models.organization import Organization
from tenantguard.models.subscription import ACTIVE, CANCELED, Subscription
from tenantguard.repos.store import Store
from tenantguard.services.billing_service import find_plan
from tenantguard.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

Handler = Callable[[Store, dict, PaymentProvider], Awaitable[None]]


def _first_item(subscription: dict) -> dict:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _price_id(subscription: dict) -> str | None:
    return (_first_item(subscription).get("price") or {}).get("id")


def _period(subscription: dict, bound: str) -> datetime | None:
    key = f"current_period_{bound}"
    value = subscription.get(key) or _first_item(subscription).get(key)
    return datetime.fromtimestamp(value, UTC) if value else None


def _plan_key(price_id: str | None) -> str:
    plan = find_plan(price_id) if price_id else None
    if plan is not None and plan.price_id:
        return plan.id
    return price_id or ""


def _org_id_from(*candidates: object) -> UUID | None:
    for value in candidates:
        if not value:
            continue
        try:
            return UUID(str(value))
        except ValueError:
            logger.warning("Ignoring malformed organization id %r", value)
    return None


def _id_of(value: object) -> str | None:
    # Stripe sends either the id or, when expanded, the object.
    if isinstance(value, dict):
        return value.get("id")
    return value if isinstance(value, str) and value else None


async def _find_org(
    store: Store, org_id: UUID | None, customer_id: str | None
) -> Organization | None:
    org = await store.orgs.get_by_id(org_id) if org_id else None
    if org is None and customer_id:
        org = await store.orgs.get_by_stripe_customer_id(customer_id)
    return org


async def _save_subscription(store: Store, org_id: UUID, subscription: dict) -> Subscription:
    """Insert or refresh the org's row; a new period re-arms its reminder."""
    existing = await store.subscriptions.get_by_org(org_id)
    if existing is None:
        existing = Subscription.new(
            org_id=org_id, stripe_subscription_id=subscription["id"], plan_id=""
        )
    record = replace(
        existing,
        stripe_subscription_id=subscription["id"],
        plan_id=_plan_key(_price_id(subscription)),
        status=subscription.get("status") or ACTIVE,
        current_period_start=_period(subscription, "start"),
        current_period_end=_period(subscription, "end"),
        period_end_reminder_sent=False,
    )
    await store.subscriptions.save(record)
    return record


async def handle_checkout_completed(
    store: Store, session: dict, payments: PaymentProvider
) -> None:
    customer_id = _id_of(session.get("customer"))
    org_id = _org_id_from(
        (session.get("metadata") or {}).get("organizationId"),
        session.get("client_reference_id"),
    )
    org = await _find_org(store, org_id, customer_id)
    if org is None:
        logger.error("Checkout %s completed for an unknown organization", session.get("id"))
        return

    subscription_id = _id_of(session.get("subscription"))
    subscription = (
        await payments.retrieve_subscription(subscription_id) if subscription_id else None
    )

    async with store.atomic(org.id):
        if customer_id and org.stripe_customer_id != customer_id:
            await store.orgs.set_stripe_customer_id(org.id, customer_id)
            logger.info("Linked customer=%s to org=%s", customer_id, org.id)
        if subscription is not None:
            await _save_subscription(store, org.id, subscription)

    logger.info("Checkout completed org=%s subscription=%s", org.id, subscription_id)


def _invoice_subscription_id(invoice: dict) -> str | None:
    direct = _id_of(invoice.get("subscription"))
    if direct:
        return direct
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return _id_of(details.get("subscription"))


async def handle_invoice_paid(
    store: Store, invoice: dict, payments: PaymentProvider
) -> None:
    customer_id = _id_of(invoice.get("customer"))
    subscription_id = _invoice_subscription_id(invoice)
    if not customer_id or not subscription_id:
        logger.info("Invoice %s is not a subscription payment; skipped", invoice.get("id"))
        return

    subscription = await payments.retrieve_subscription(subscription_id)
    org_id = _org_id_from((subscription.get("metadata") or {}).get("organizationId"))
    org = await _find_org(store, org_id, customer_id)
    if org is None or org.is_deleted:
        logger.error(
            "Invoice %s paid by customer=%s has no organization yet",
            invoice.get("id"),
            customer_id,
        )
        raise ProcedureError(
            ErrorKind.INTERNAL_SERVER_ERROR, "Organization not found, will retry"
        )

    price_id = _price_id(subscription)
    plan = find_plan(price_id) if price_id else None
    credits = plan.credits if plan is not None and plan.price_id else 0

    async with store.atomic(org.id):
        if not org.stripe_customer_id:
            await store.orgs.set_stripe_customer_id(org.id, customer_id)
        await _save_subscription(store, org.id, subscription)
        if credits > 0:
            await store.orgs.add_credits(org.id, credits)
            await store.orgs.set_reminder_sent(org.id, False)

    if credits > 0:
        logger.info(
            "Invoice %s added %d credits to org=%s (%s)",
            invoice.get("id"),
            credits,
            org.id,
            invoice.get("billing_reason"),
        )
    else:
        logger.warning("No credits configured for price=%s org=%s", price_id, org.id)


async def handle_subscription_updated(
    store: Store, subscription: dict, payments: PaymentProvider
) -> None:
    existing = await store.subscriptions.get_by_stripe_id(subscription["id"])
    if existing is None:
        logger.info("Subscription %s is not tracked; update skipped", subscription["id"])
        return
    price_id = _price_id(subscription)
    await store.subscriptions.save(
        replace(
            existing,
            plan_id=_plan_key(price_id) if price_id else existing.plan_id,
            status=subscription.get("status") or existing.status,
            current_period_start=_period(subscription, "start")
            or existing.current_period_start,
            current_period_end=_period(subscription, "end") or existing.current_period_end,
        )
    )
    logger.info("Subscription %s synced status=%s", subscription["id"], subscription.get("status"))


async def handle_subscription_deleted(
    store: Store, subscription: dict, payments: PaymentProvider
) -> None:
    existing = await store.subscriptions.get_by_stripe_id(subscription["id"])
    if existing is None:
        logger.info("Subscription %s is not tracked; delete skipped", subscription["id"])
        return
    await store.subscriptions.save(
        replace(
            existing,
            status=subscription.get("status") or CANCELED,
            current_period_end=_period(subscription, "end") or existing.current_period_end,
        )
    )
    logger.info("Subscription %s ended for org=%s", subscription["id"], existing.org_id)


HANDLERS: dict[str, Handler] = {
    "checkout.session.completed": handle_checkout_completed,
    "invoice.paid": handle_invoice_paid,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
}


async def handle_event(store: Store, event: dict, payments: PaymentProvider) -> bool:
    """Dispatch one verified event.  Returns False for event types we ignore."""
    handler = HANDLERS.get(event.get("type", ""))
    if handler is None:
        logger.debug("Ignoring Stripe event type=%s", event.get("type"))
        return False
    await handler(store, event["data"]["object"], payments)
    return True
