from __future__ import annotations

from fastapi.testclient import TestClient

from tenantguard.core.permissions import Role
from tenantguard.repos.store import memory_store
from tests.helpers import add_org, add_subscription, auth_headers, run, seed_org_with_roles


def test_create_org_sets_cookie_and_first_org_is_primary(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    outsider = users["outsider"]

    resp = client.post("/v1/orgs", json={"name": "Side Gig"}, headers=auth_headers(outsider))

    assert resp.status_code == 201
    body = resp.json()
    assert body["role"] == "OWNER"
    assert body["is_primary"] is True
    assert body["credits"] == 5
    assert resp.cookies.get("current-org-id") == body["id"]


def test_second_org_gets_no_free_credits(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    resp = client.post("/v1/orgs", json={"name": "Second"}, headers=auth_headers(users["owner"]))
    assert resp.json()["is_primary"] is False
    assert resp.json()["credits"] == 0


def test_org_cap(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    headers = auth_headers(users["owner"])
    for i in range(4):
        assert client.post("/v1/orgs", json={"name": f"org {i}"}, headers=headers).status_code == 201

    resp = client.post("/v1/orgs", json={"name": "one too many"}, headers=headers)
    assert resp.status_code == 412
    assert resp.json()["code"] == "PRECONDITION_FAILED"
    assert "up to 5 organizations" in resp.json()["message"]


def test_org_name_too_long(client: TestClient) -> None:
    _, users = seed_org_with_roles()
    resp = client.post("/v1/orgs", json={"name": "x" * 21}, headers=auth_headers(users["owner"]))
    assert resp.status_code == 400
    assert resp.json()["code"] == "BAD_REQUEST"


def test_list_orgs_includes_role(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    resp = client.get("/v1/orgs", headers=auth_headers(users["admin"]))
    assert [(o["id"], o["role"]) for o in resp.json()] == [(str(org.id), "ADMIN")]


def test_get_org_hides_foreign_orgs(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    assert client.get(f"/v1/orgs/{org.id}", headers=auth_headers(users["member"])).status_code == 200
    resp = client.get(f"/v1/orgs/{org.id}", headers=auth_headers(users["outsider"]))
    assert resp.status_code == 404
    assert resp.json() == {"code": "NOT_FOUND", "message": "Organization not found"}


def test_switch_org(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    resp = client.post(f"/v1/orgs/{org.id}/switch", headers=auth_headers(users["member"]))
    assert resp.status_code == 200
    assert resp.json()["role"] == "MEMBER"
    assert resp.cookies.get("current-org-id") == str(org.id)


def test_switch_to_foreign_org_is_forbidden(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    resp = client.post(f"/v1/orgs/{org.id}/switch", headers=auth_headers(users["outsider"]))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Not a member of this organization"


def test_rename(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    resp = client.patch(
        "/v1/orgs/current", json={"name": "Acme Labs"}, headers=auth_headers(users["admin"], org)
    )
    assert resp.json()["name"] == "Acme Labs"


def test_list_members(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    resp = client.get("/v1/orgs/current/members", headers=auth_headers(users["member"], org))
    roles = {m["email"]: m["role"] for m in resp.json()}
    assert roles == {
        "owner@example.com": "OWNER",
        "admin@example.com": "ADMIN",
        "member@example.com": "MEMBER",
    }


def test_role_changes(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    headers = auth_headers(users["admin"], org)

    promoted = client.patch(
        f"/v1/orgs/current/members/{users['member'].id}", json={"role": "ADMIN"}, headers=headers
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "ADMIN"

    to_owner = client.patch(
        f"/v1/orgs/current/members/{users['member'].id}", json={"role": "OWNER"}, headers=headers
    )
    assert to_owner.status_code == 403

    demote_owner = client.patch(
        f"/v1/orgs/current/members/{users['owner'].id}", json={"role": "MEMBER"}, headers=headers
    )
    assert demote_owner.status_code == 403
    assert "ownership transfer" in demote_owner.json()["message"]


def test_unknown_role_is_a_bad_request(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    resp = client.patch(
        f"/v1/orgs/current/members/{users['member'].id}",
        json={"role": "SUPERUSER"},
        headers=auth_headers(users["owner"], org),
    )
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("role:")


def test_remove_member_and_last_owner(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    headers = auth_headers(users["owner"], org)

    removed = client.delete(f"/v1/orgs/current/members/{users['member'].id}", headers=headers)
    assert removed.json() == {"success": True}
    assert run(memory_store.members.get(org.id, users["member"].id)) is None

    last_owner = client.delete(f"/v1/orgs/current/members/{users['owner'].id}", headers=headers)
    assert last_owner.status_code == 403
    assert last_owner.json()["message"] == "Cannot remove the last owner of the organization."


def test_delete_transfers_credits_and_switches_cookie(client: TestClient, payments) -> None:
    org, users = seed_org_with_roles()
    owner = users["owner"]
    target = run(add_org(memory_store, owner, name="Target", credits=2))
    run(add_subscription(memory_store, org))

    resp = client.post(
        "/v1/orgs/current/delete",
        json={"transfer_to_org_id": str(target.id)},
        headers=auth_headers(owner, org),
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "next_org_id": str(target.id)}
    assert resp.cookies.get("current-org-id") == str(target.id)
    assert run(memory_store.orgs.get_by_id(target.id)).credits == 7
    assert run(memory_store.orgs.get_by_id(org.id)).deleted_at is not None
    assert len(payments.cancelled) == 1


def test_delete_rejects_transfer_to_org_not_owned(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    foreign = run(add_org(memory_store, users["outsider"], name="Foreign"))

    resp = client.post(
        "/v1/orgs/current/delete",
        json={"transfer_to_org_id": str(foreign.id)},
        headers=auth_headers(users["owner"], org),
    )

    assert resp.status_code == 403
    assert run(memory_store.orgs.get_by_id(org.id)).deleted_at is None
    assert run(memory_store.orgs.get_by_id(foreign.id)).credits == 0


def test_deleted_org_no_longer_resolves_as_tenant(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    client.post("/v1/orgs/current/delete", json={}, headers=auth_headers(users["owner"], org))

    resp = client.get("/v1/projects", headers=auth_headers(users["member"], org))
    assert resp.status_code == 403


def test_role_of_member_is_reported_by_get(client: TestClient) -> None:
    org, users = seed_org_with_roles()
    resp = client.get(f"/v1/orgs/{org.id}", headers=auth_headers(users["owner"]))
    assert resp.json()["role"] == Role.OWNER.value
