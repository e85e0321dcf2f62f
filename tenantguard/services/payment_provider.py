"""Payment provider boundary.

The core only ever asks four things of the payment provider:

  - "give me a hosted checkout URL for this price"
  - "give me a billing-portal URL for this customer"
  - "cancel this subscription"
  - "show me this subscription" (for webhook events that only carry its id)

Subscriptions come back as plain dicts in the provider's JSON shape.
``StripePaymentProvider`` implements them with the ``stripe`` SDK.  The
SDK is synchronous, so each call runs in a worker thread via
``asyncio.to_thread`` to keep the event loop free.
``FakePaymentProvider`` records calls and returns deterministic URLs for
dev and tests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Protocol
from uuid import UUID

import stripe

from tenantguard.core.config import SETTINGS

logger = logging.getLogger(__name__)

STRIPE_API_VERSION = "2025-06-30.basil"
STRIPE_MAX_NETWORK_RETRIES = 2


class PaymentError(Exception):
    """The payment provider rejected a call or could not be reached."""


class PaymentProvider(Protocol):
    async def create_checkout_session(
        self,
        *,
        price_id: str,
        org_id: UUID,
        user_id: UUID,
        customer_id: str | None,
        domain_url: str,
    ) -> str: ...

    async def create_portal_session(self, *, customer_id: str, return_url: str) -> str: ...

    async def cancel_subscription(self, subscription_id: str) -> None: ...

    async def retrieve_subscription(self, subscription_id: str) -> dict: ...


class StripePaymentProvider:
    def __init__(self, api_key: str) -> None:
        stripe.api_key = api_key
        stripe.api_version = STRIPE_API_VERSION
        stripe.max_network_retries = STRIPE_MAX_NETWORK_RETRIES

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        org_id: UUID,
        user_id: UUID,
        customer_id: str | None,
        domain_url: str,
    ) -> str:
        params: dict = {
            "mode": "subscription",
            "billing_address_collection": "auto",
            "line_items": [{"price": price_id, "quantity": 1}],
            "payment_method_types": ["card"],
            "success_url": f"{domain_url}/payment/success",
            "cancel_url": f"{domain_url}/payment/unsuccessful",
            "allow_promotion_codes": True,
            "client_reference_id": str(org_id),
            "metadata": {"userId": str(user_id), "organizationId": str(org_id)},
            "subscription_data": {"metadata": {"organizationId": str(org_id)}},
        }
        if customer_id and customer_id.startswith("cus_"):
            params["customer"] = customer_id
            params["customer_update"] = {"address": "auto", "name": "auto"}

        try:
            session = await asyncio.to_thread(
                partial(stripe.checkout.Session.create, **params)
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout session failed for org=%s: %s", org_id, e)
            raise PaymentError(str(e)) from e
        return session.url

    async def create_portal_session(self, *, customer_id: str, return_url: str) -> str:
        try:
            session = await asyncio.to_thread(
                partial(
                    stripe.billing_portal.Session.create,
                    customer=customer_id,
                    return_url=return_url,
                )
            )
        except stripe.StripeError as e:
            logger.error("Stripe portal session failed for customer=%s: %s", customer_id, e)
            raise PaymentError(str(e)) from e
        return session.url

    async def cancel_subscription(self, subscription_id: str) -> None:
        try:
            await asyncio.to_thread(stripe.Subscription.cancel, subscription_id)
        except stripe.StripeError as e:
            raise PaymentError(str(e)) from e

    async def retrieve_subscription(self, subscription_id: str) -> dict:
        try:
            subscription = await asyncio.to_thread(
                stripe.Subscription.retrieve, subscription_id
            )
        except stripe.StripeError as e:
            logger.error("Stripe subscription lookup failed for %s: %s", subscription_id, e)
            raise PaymentError(str(e)) from e
        return subscription.to_dict()


@dataclass
class FakePaymentProvider:
    """In-process stand-in.  Set ``fail_cancel`` to simulate an outage."""

    checkouts: list[dict] = field(default_factory=list)
    portals: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    subscriptions: dict[str, dict] = field(default_factory=dict)
    fail_cancel: bool = False

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        org_id: UUID,
        user_id: UUID,
        customer_id: str | None,
        domain_url: str,
    ) -> str:
        self.checkouts.append(
            {"price_id": price_id, "org_id": org_id, "customer_id": customer_id}
        )
        return f"{domain_url}/fake-checkout/{org_id}?price={price_id}"

    async def create_portal_session(self, *, customer_id: str, return_url: str) -> str:
        self.portals.append(customer_id)
        return f"{return_url}?portal={customer_id}"

    async def cancel_subscription(self, subscription_id: str) -> None:
        if self.fail_cancel:
            raise PaymentError(f"cancel failed for {subscription_id}")
        self.cancelled.append(subscription_id)

    async def retrieve_subscription(self, subscription_id: str) -> dict:
        try:
            return dict(self.subscriptions[subscription_id])
        except KeyError:
            raise PaymentError(f"No such subscription: {subscription_id}") from None

    def reset(self) -> None:
        self.checkouts.clear()
        self.portals.clear()
        self.cancelled.clear()
        self.subscriptions.clear()
        self.fail_cancel = False


if SETTINGS.stripe_secret_key:
    payment_provider: PaymentProvider = StripePaymentProvider(SETTINGS.stripe_secret_key)
else:
    payment_provider = FakePaymentProvider()
