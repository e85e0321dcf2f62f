"""Billing: hosted checkout, early renewal and the customer portal.

The service never touches card data; it only asks the payment provider
for redirect URLs.  Subscription state itself arrives from the provider
out of band and is mirrored in the ``subscriptions`` table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from tenantguard.core.config import SETTINGS, Settings
from tenantguard.core.errors import (
    BadRequestError,
    ErrorKind,
    NotFoundError,
    PreconditionFailedError,
    ProcedureError,
)
from tenantguard.models.organization import Organization
from tenantguard.repos.store import Store
from tenantguard.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

FREE = "free"
PRO = "pro"
PRO_PLUS = "proplus"


@dataclass(frozen=True, slots=True)
class PricingPlan:
    id: str
    title: str
    price: str
    credits: int
    price_id: str | None = None


def pricing_plans(settings: Settings | None = None) -> tuple[PricingPlan, ...]:
    settings = settings or SETTINGS
    return (
        PricingPlan(id=FREE, title="Free", price="0", credits=settings.limits.free_credits),
        PricingPlan(
            id=PRO,
            title="Pro",
            price="9.99",
            credits=50,
            price_id=settings.stripe_price_id_pro,
        ),
        PricingPlan(
            id=PRO_PLUS,
            title="Pro Plus",
            price="19.99",
            credits=100,
            price_id=settings.stripe_price_id_pro_plus,
        ),
    )


def find_plan(plan_or_price_id: str, settings: Settings | None = None) -> PricingPlan | None:
    """Match on either the plan id or the provider price id."""
    for plan in pricing_plans(settings):
        if plan_or_price_id in (plan.id, plan.price_id):
            return plan
    return None


async def _get_org(store: Store, org_id: UUID) -> Organization:
    org = await store.orgs.get_by_id(org_id)
    if org is None or org.deleted_at is not None:
        raise NotFoundError("Organization not found")
    return org


async def create_subscription_checkout(
    store: Store,
    org_id: UUID,
    user_id: UUID,
    plan_id: str,
    payments: PaymentProvider,
    *,
    settings: Settings | None = None,
) -> str:
    settings = settings or SETTINGS
    plan = next((p for p in pricing_plans(settings) if p.id == plan_id), None)
    if plan is None or not plan.price_id:
        raise BadRequestError("Invalid plan selected")

    org = await _get_org(store, org_id)
    url = await payments.create_checkout_session(
        price_id=plan.price_id,
        org_id=org_id,
        user_id=user_id,
        customer_id=org.stripe_customer_id,
        domain_url=settings.site_url,
    )
    logger.info("Checkout session created org=%s plan=%s", org_id, plan.id)
    return url


async def renew_subscription(
    store: Store,
    org_id: UUID,
    user_id: UUID,
    payments: PaymentProvider,
    *,
    settings: Settings | None = None,
) -> str:
    """Start an early renewal checkout; only offered when credits run low."""
    settings = settings or SETTINGS
    org = await _get_org(store, org_id)

    subscription = await store.subscriptions.get_by_org(org_id)
    if subscription is None or not subscription.is_active or not subscription.plan_id:
        raise PreconditionFailedError("No active subscription found")

    threshold = settings.limits.renewal_credit_threshold
    if org.credits >= threshold:
        raise PreconditionFailedError(f"Credits must be below {threshold} to renew early")

    plan = find_plan(subscription.plan_id, settings)
    if plan is None or not plan.price_id:
        logger.error(
            "No price for plan=%s on subscription=%s", subscription.plan_id, subscription.id
        )
        raise ProcedureError(
            ErrorKind.INTERNAL_SERVER_ERROR, "Could not resolve price ID for renewal"
        )

    url = await payments.create_checkout_session(
        price_id=plan.price_id,
        org_id=org_id,
        user_id=user_id,
        customer_id=org.stripe_customer_id,
        domain_url=settings.site_url,
    )
    logger.info("Renewal checkout created org=%s plan=%s", org_id, plan.id)
    return url


async def create_customer_portal(
    store: Store,
    org_id: UUID,
    payments: PaymentProvider,
    *,
    settings: Settings | None = None,
) -> str:
    settings = settings or SETTINGS
    org = await _get_org(store, org_id)
    if not org.stripe_customer_id:
        raise PreconditionFailedError(
            "No Stripe customer found. Please subscribe to a plan first."
        )
    return await payments.create_portal_session(
        customer_id=org.stripe_customer_id, return_url=f"{settings.site_url}/dashboard"
    )
