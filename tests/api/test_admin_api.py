from __future__ import annotations

from fastapi.testclient import TestClient

from tenantguard.repos.store import memory_store
from tests.helpers import add_subscription, auth_headers, run, seed_org_with_roles


def test_stats(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    run(add_subscription(memory_store, org))
    resp = client.get("/admin/stats", headers=auth_headers(users["super_admin"]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_users"] == 5
    assert body["total_orgs"] == 1
    assert body["active_pro_count"] == 1
    assert body["total_revenue"] == 9.99


def test_users_page(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    resp = client.get(
        "/admin/users", params={"page": 2, "limit": 2}, headers=auth_headers(users["super_admin"])
    )
    body = resp.json()
    assert (body["total"], body["page"], body["limit"], body["total_pages"]) == (5, 2, 2, 3)
    assert len(body["users"]) == 2


def test_users_search(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    resp = client.get(
        "/admin/users", params={"query": "owner"}, headers=auth_headers(users["super_admin"])
    )
    (user,) = resp.json()["users"]
    assert user["email"] == "owner@example.com"
    assert user["membership_count"] == 1


def test_limit_over_max_is_rejected(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    resp = client.get(
        "/admin/users", params={"limit": 1000}, headers=auth_headers(users["super_admin"])
    )
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("query.limit:")


def test_organizations_and_details(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    headers = auth_headers(users["super_admin"])

    listing = client.get("/admin/organizations", headers=headers).json()
    (summary,) = listing["organizations"]
    assert summary["member_count"] == 3
    assert summary["subscription"] is None

    details = client.get(f"/admin/organizations/{org.id}", headers=headers).json()
    assert details["name"] == "Acme"
    assert {m["role"] for m in details["members"]} == {"OWNER", "ADMIN", "MEMBER"}
    assert details["pending_invites"] == 0


def test_unknown_organization(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    resp = client.get(
        "/admin/organizations/00000000-0000-0000-0000-000000000000",
        headers=auth_headers(users["super_admin"]),
    )
    assert resp.status_code == 404


def test_subscriptions_filter(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    run(add_subscription(memory_store, org))
    headers = auth_headers(users["super_admin"])

    active = client.get("/admin/subscriptions", params={"status": "active"}, headers=headers)
    assert active.json()["subscriptions"][0]["organization"] == {
        "id": str(org.id),
        "name": "Acme",
    }
    canceled = client.get("/admin/subscriptions", params={"status": "canceled"}, headers=headers)
    assert canceled.json()["total"] == 0


def test_tenant_owner_is_not_a_platform_admin(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    resp = client.get("/admin/organizations", headers=auth_headers(users["owner"], org))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Super admin access required"
