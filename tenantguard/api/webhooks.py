"""Stripe webhook endpoint.

Stripe signs each delivery with ``STRIPE_WEBHOOK_SECRET``; the raw body
is verified with ``stripe.Webhook.construct_event`` before anything is
read from it.  A 2xx tells Stripe the event is done, anything else makes
it redeliver with backoff.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated

import stripe
from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel

from tenantguard.api.dependencies import get_payment_provider, get_store
from tenantguard.core.config import SETTINGS
from tenantguard.core.errors import BadRequestError, ErrorKind, ProcedureError
from tenantguard.repos.store import Store
from tenantguard.services import stripe_webhook
from tenantguard.services.payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class WebhookOut(BaseModel):
    received: bool = True
    handled: bool


@router.post("/stripe", response_model=WebhookOut)
async def stripe_events(
    request: Request,
    store: Annotated[Store, Depends(get_store)],
    payments: Annotated[PaymentProvider, Depends(get_payment_provider)],
    stripe_signature: Annotated[str | None, Header()] = None,
) -> WebhookOut:
    secret = SETTINGS.stripe_webhook_secret
    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured; refusing webhook")
        raise ProcedureError(ErrorKind.INTERNAL_SERVER_ERROR, "Webhook not configured")
    if not stripe_signature:
        logger.warning("Stripe webhook without a signature rejected")
        raise BadRequestError("Missing Stripe-Signature header")

    payload = await request.body()
    try:
        stripe.Webhook.construct_event(payload, stripe_signature, secret)
    except ValueError as e:
        logger.warning("Stripe webhook with an invalid payload rejected: %s", e)
        raise BadRequestError("Invalid payload") from None
    except stripe.SignatureVerificationError as e:
        logger.warning("Stripe webhook signature verification failed: %s", e)
        raise BadRequestError("Webhook signature verification failed") from None

    # Handlers work on plain dicts, so read the verified body directly.
    event = json.loads(payload)
    logger.info("Stripe event received id=%s type=%s", event.get("id"), event.get("type"))
    handled = await stripe_webhook.handle_event(store, event, payments)
    return WebhookOut(handled=handled)
