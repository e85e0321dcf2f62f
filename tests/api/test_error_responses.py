"""Every failure leaves the API as ``{"code", "message"}``."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.testclient import TestClient

from tenantguard.main import app
from tests.helpers import auth_headers, seed_org_with_roles

boom = APIRouter(prefix="/_test")


@boom.get("/crash")
async def crash() -> None:
    raise RuntimeError("connection string postgres://user:hunter2@db leaked")


@boom.get("/limit")
async def limit() -> None:
    raise ValueError("Limit reached: too many widgets")


@boom.get("/missing")
async def missing() -> None:
    raise LookupError("Widget not found")


app.include_router(boom)


def test_unexpected_errors_are_masked() -> None:
    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/_test/crash")
    assert resp.status_code == 500
    assert resp.json() == {"code": "INTERNAL_SERVER_ERROR", "message": "Internal server error"}
    assert "hunter2" not in resp.text


def test_untyped_errors_are_classified_by_message() -> None:
    client = TestClient(app, raise_server_exceptions=False)

    limited = client.get("/_test/limit")
    assert limited.status_code == 412
    assert limited.json() == {
        "code": "PRECONDITION_FAILED",
        "message": "Limit reached: too many widgets",
    }

    missing = client.get("/_test/missing")
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


def test_validation_errors_are_bad_requests(client: TestClient) -> None:
    resp = client.post("/v1/auth/validate-email", json={"mail": "a@example.com"})
    assert resp.status_code == 400
    assert resp.json() == {"code": "BAD_REQUEST", "message": "email: Field required"}


def test_malformed_json_is_a_bad_request(client: TestClient) -> None:
    resp = client.post(
        "/v1/auth/validate-email",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "BAD_REQUEST"


def test_path_parameter_validation(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    resp = client.get("/v1/orgs/not-a-uuid", headers=auth_headers(users["owner"]))
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("path.org_id:")
