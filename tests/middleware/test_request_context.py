from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from tests.helpers import auth_headers, seed_org_with_roles


def test_generates_request_id(client: TestClient) -> None:
    resp = client.get("/health")
    uuid.UUID(resp.headers["X-Request-ID"])


def test_echoes_client_request_id(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "trace-abc"})
    assert resp.headers["X-Request-ID"] == "trace-abc"


def test_request_id_present_on_errors(client: TestClient) -> None:
    resp = client.get("/v1/projects", headers={"X-Request-ID": "trace-401"})
    assert resp.status_code == 401
    assert resp.headers["X-Request-ID"] == "trace-401"


def test_summary_line_is_logged(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="tenantguard.middleware.request_context"):
        client.get("/health", headers={"X-Request-ID": "trace-log"})

    records = [r for r in caplog.records if getattr(r, "request_id", None) == "trace-log"]
    assert records
    summary = records[-1]
    assert summary.getMessage().startswith("GET /health -> 200")
    assert summary.status_code == 200  # type: ignore[attr-defined]
    assert summary.path == "/health"  # type: ignore[attr-defined]


def test_denials_are_logged_with_procedure_name(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    org, users = seed_org_with_roles()
    with caplog.at_level(logging.INFO, logger="tenantguard.api.dependencies"):
        client.post(
            "/v1/orgs/current/invites",
            json={"email": "new@example.com"},
            headers=auth_headers(users["member"], org),
        )
    assert any(
        "org.inviteMember denied: FORBIDDEN" in r.getMessage() for r in caplog.records
    )
