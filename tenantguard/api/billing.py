"""Billing endpoints.  Each returns a provider-hosted URL to redirect to."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tenantguard.api.dependencies import get_payment_provider, procedure
from tenantguard.core.errors import ErrorKind, ProcedureError
from tenantguard.core.guards import AccessLevel
from tenantguard.models.context import TenantContext
from tenantguard.services import billing_service
from tenantguard.services.payment_provider import PaymentError, PaymentProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/billing", tags=["billing"])


class CreateSubscriptionIn(BaseModel):
    plan_id: str


class RedirectOut(BaseModel):
    url: str


def _provider_failure(e: PaymentError) -> ProcedureError:
    logger.error("Payment provider call failed: %s", e)
    return ProcedureError(ErrorKind.INTERNAL_SERVER_ERROR, "Payment provider unavailable")


@router.post("/subscription", response_model=RedirectOut)
async def create_subscription(
    body: CreateSubscriptionIn,
    ctx: Annotated[
        TenantContext,
        Depends(procedure("billing.createSubscription", AccessLevel.ELEVATED_ROLE)),
    ],
    payments: Annotated[PaymentProvider, Depends(get_payment_provider)],
) -> RedirectOut:
    try:
        url = await billing_service.create_subscription_checkout(
            ctx.store, ctx.org_id, ctx.user_id, body.plan_id, payments
        )
    except PaymentError as e:
        raise _provider_failure(e) from e
    return RedirectOut(url=url)


@router.post("/subscription/renew", response_model=RedirectOut)
async def renew_subscription(
    ctx: Annotated[
        TenantContext,
        Depends(procedure("billing.renewSubscription", AccessLevel.ELEVATED_ROLE)),
    ],
    payments: Annotated[PaymentProvider, Depends(get_payment_provider)],
) -> RedirectOut:
    """Early renewal, allowed only while credits are below the threshold."""
    try:
        url = await billing_service.renew_subscription(
            ctx.store, ctx.org_id, ctx.user_id, payments
        )
    except PaymentError as e:
        raise _provider_failure(e) from e
    return RedirectOut(url=url)


@router.post("/portal", response_model=RedirectOut)
async def create_customer_portal(
    ctx: Annotated[
        TenantContext,
        Depends(procedure("billing.createCustomerPortal", AccessLevel.ELEVATED_ROLE)),
    ],
    payments: Annotated[PaymentProvider, Depends(get_payment_provider)],
) -> RedirectOut:
    try:
        url = await billing_service.create_customer_portal(ctx.store, ctx.org_id, payments)
    except PaymentError as e:
        raise _provider_failure(e) from e
    return RedirectOut(url=url)
