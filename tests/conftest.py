from __future__ import annotations

import os

# Settings are read once at import time, so the environment has to be in
# place before anything under tenantguard is imported.
os.environ["APP_ENV"] = "test"
os.environ["SUPER_ADMIN_EMAILS"] = "root@example.com"
os.environ["CRON_SECRET"] = "cron-test-secret"
os.environ["SITE_URL"] = "http://localhost:3000"
os.environ["STRIPE_PRICE_ID_PRO"] = "price_pro_test"
os.environ["STRIPE_PRICE_ID_PRO_PLUS"] = "price_proplus_test"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
for _name in (
    "DATABASE_URL",
    "REDIS_URL",
    "STRIPE_SECRET_KEY",
    "RESEND_API_KEY",
    "JWT_PUBLIC_KEY",
    "JWKS_URL",
    "JWT_ISSUER",
    "JWT_AUDIENCE",
    "JWT_ALGORITHM",
):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from tenantguard.main import app  # noqa: E402
from tenantguard.repos.store import InMemoryStore, memory_store  # noqa: E402
from tenantguard.services import (  # noqa: E402
    email_service,
    invite_cooldown,
    payment_provider,
)


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """The API runs on the shared in-memory store; start every test empty."""
    memory_store.reset()


@pytest.fixture(autouse=True)
def reset_cooldowns() -> None:
    if hasattr(invite_cooldown.invite_cooldown, "_expiry"):
        invite_cooldown.invite_cooldown._expiry.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_outbox() -> None:
    email_service.email_sender.reset()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_payments() -> None:
    payment_provider.payment_provider.reset()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def store() -> InMemoryStore:
    """A private store for service-level tests."""
    return InMemoryStore()


@pytest.fixture
def outbox() -> list:
    return email_service.email_sender.outbox  # type: ignore[union-attr]


@pytest.fixture
def payments() -> payment_provider.FakePaymentProvider:
    return payment_provider.payment_provider  # type: ignore[return-value]
