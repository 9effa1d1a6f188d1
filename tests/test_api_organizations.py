"""
Organization API tests — create/list/get, members and invites over HTTP.
"""

import pytest


@pytest.fixture()
def admin(make_user):
    return make_user("admin@acme.io")


@pytest.fixture()
def outsider(make_user):
    return make_user("outsider@acme.io", first_name="Bob", last_name="Outsider")


@pytest.fixture()
def org(client, admin, auth_headers):
    res = client.post("/api/v1/organizations", json={"name": "Acme"}, headers=auth_headers(admin))
    assert res.status_code == 201
    return res.get_json()


class TestOrganizationAPI:
    def test_create(self, org, admin):
        assert org["name"] == "Acme"
        assert org["members"] == [{"user_id": admin.id, "permission_level": "ADMIN"}]
        assert org["invites"] == []
        assert org["created_at"] == org["updated_at"]
        assert len(org["id"]) == 32

    def test_create_requires_name(self, client, admin, auth_headers):
        res = client.post("/api/v1/organizations", json={}, headers=auth_headers(admin))
        assert res.status_code == 400

    def test_list_only_own(self, client, org, outsider, auth_headers):
        client.post("/api/v1/organizations", json={"name": "Globex"}, headers=auth_headers(outsider))
        res = client.get("/api/v1/organizations", headers=auth_headers(outsider))
        assert [o["name"] for o in res.get_json()] == ["Globex"]

    def test_get_member(self, client, org, admin, auth_headers):
        res = client.get(f"/api/v1/organizations/{org['id']}", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["id"] == org["id"]

    def test_get_non_member_forbidden(self, client, org, outsider, auth_headers):
        res = client.get(f"/api/v1/organizations/{org['id']}", headers=auth_headers(outsider))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_get_missing(self, client, admin, auth_headers):
        res = client.get(f"/api/v1/organizations/{'0' * 32}", headers=auth_headers(admin))
        assert res.status_code == 404


class TestMembersAPI:
    def test_add_update_remove(self, client, org, admin, outsider, auth_headers):
        base = f"/api/v1/organizations/{org['id']}/members"
        res = client.post(base, json={"user_id": outsider.id, "permission_level": "READ_ONLY"},
                          headers=auth_headers(admin))
        assert res.status_code == 201
        assert {"user_id": outsider.id, "permission_level": "READ_ONLY"} in res.get_json()["members"]

        res = client.get(f"/api/v1/organizations/{org['id']}", headers=auth_headers(outsider))
        assert res.status_code == 200

        res = client.put(f"{base}/{outsider.id}", json={"permission_level": "COLLABORATOR"},
                         headers=auth_headers(admin))
        assert res.status_code == 200

        res = client.delete(f"{base}/{outsider.id}", headers=auth_headers(admin))
        assert res.status_code == 200
        assert len(res.get_json()["members"]) == 1

    def test_add_unknown_user(self, client, org, admin, auth_headers):
        res = client.post(f"/api/v1/organizations/{org['id']}/members",
                          json={"user_id": "f" * 32}, headers=auth_headers(admin))
        assert res.status_code == 404

    def test_non_admin_cannot_add(self, client, org, admin, outsider, auth_headers, make_user):
        client.post(f"/api/v1/organizations/{org['id']}/members",
                    json={"user_id": outsider.id, "permission_level": "COLLABORATOR"},
                    headers=auth_headers(admin))
        third = make_user("third@acme.io")
        res = client.post(f"/api/v1/organizations/{org['id']}/members",
                          json={"user_id": third.id}, headers=auth_headers(outsider))
        assert res.status_code == 403
        assert res.get_json()["details"] == {"required": "ADMIN"}

    def test_invalid_level(self, client, org, admin, outsider, auth_headers):
        res = client.post(f"/api/v1/organizations/{org['id']}/members",
                          json={"user_id": outsider.id, "permission_level": "OWNER"},
                          headers=auth_headers(admin))
        assert res.status_code == 422

    def test_last_admin_cannot_leave(self, client, org, admin, auth_headers):
        res = client.delete(f"/api/v1/organizations/{org['id']}/members/{admin.id}",
                            headers=auth_headers(admin))
        assert res.status_code == 422


class TestInvitesAPI:
    def test_invite_and_cancel(self, client, org, admin, auth_headers):
        url = f"/api/v1/organizations/{org['id']}/invites"
        res = client.post(url, json={"email": "new@acme.io"}, headers=auth_headers(admin))
        assert res.status_code == 201
        assert res.get_json()["invites"] == [{"email": "new@acme.io", "status": "PENDING"}]

        res = client.post(url, json={"email": "new@acme.io"}, headers=auth_headers(admin))
        assert res.status_code == 409

        res = client.put(url, json={"email": "new@acme.io", "status": "CANCELED"},
                         headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["invites"][0]["status"] == "CANCELED"

    def test_invite_requires_email(self, client, org, admin, auth_headers):
        res = client.post(f"/api/v1/organizations/{org['id']}/invites", json={},
                          headers=auth_headers(admin))
        assert res.status_code == 400

    def test_outsider_cannot_invite(self, client, org, outsider, auth_headers):
        res = client.post(f"/api/v1/organizations/{org['id']}/invites",
                          json={"email": "new@acme.io"}, headers=auth_headers(outsider))
        assert res.status_code == 403


class TestHealthAPI:
    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"

    def test_request_headers(self, client):
        res = client.get("/api/v1/health/ready")
        assert "X-Request-ID" in res.headers
        assert "X-Request-Duration-Ms" in res.headers
