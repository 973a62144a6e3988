"""Registration, login and admin user management."""

from __future__ import annotations

import pytest

from research_tasks.models import Role
from tests.helpers import PASSWORD, bearer, set_role, submit_ok


@pytest.mark.integration
class TestRegisterAndLogin:
    async def test_register_then_login(self, client):
        resp = await client.post("/users/register", json={"email": "u1@x.com", "password": "pw123"})
        assert resp.status_code == 201
        body = resp.json()
        assert body["token"]
        assert body["user"]["role"] == "user"
        assert body["user"]["profile_complete"] is False

        resp = await client.post("/users/login", json={"email": "u1@x.com", "password": "pw123"})
        assert resp.status_code == 200
        token = resp.json()["token"]

        me = await client.get("/users/me", headers=bearer(token))
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "u1@x.com"

    async def test_duplicate_email_is_rejected(self, client, alice):
        resp = await client.post("/users/register", json={"email": "alice@x.com", "password": "other"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "EMAIL_TAKEN"

    async def test_duplicate_email_ignores_case(self, client, alice):
        resp = await client.post("/users/register", json={"email": "ALICE@x.com", "password": "other"})
        assert resp.status_code == 400

    async def test_wrong_password(self, client, alice):
        resp = await client.post("/users/login", json={"email": "alice@x.com", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHENTICATED"

    async def test_unknown_email(self, client):
        resp = await client.post("/users/login", json={"email": "ghost@x.com", "password": PASSWORD})
        assert resp.status_code == 401

    async def test_malformed_body(self, client):
        resp = await client.post("/users/register", json={"email": "not-an-email", "password": "pw"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "INVALID_INPUT"
        assert "email" in body["message"]

    async def test_complete_profile(self, client, alice):
        resp = await client.post(
            "/users/complete-profile", json={"name": "Alice Liddell"}, headers=alice["headers"]
        )
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["name"] == "Alice Liddell"
        assert user["profile_complete"] is True


@pytest.mark.integration
class TestUserManagement:
    async def test_admin_lists_users(self, client, admin, alice):
        resp = await client.get("/users", headers=admin["headers"])
        assert resp.status_code == 200
        emails = {u["email"] for u in resp.json()["users"]}
        assert emails == {"root@x.com", "alice@x.com"}

    @pytest.mark.parametrize("who", ["alice", "supporter"])
    async def test_non_admins_cannot_list_users(self, client, alice, supporter, who):
        account = {"alice": alice, "supporter": supporter}[who]
        resp = await client.get("/users", headers=account["headers"])
        assert resp.status_code == 403

    async def test_promote_to_supporter_then_again(self, client, admin, alice):
        url = f"/users/{alice['id']}/promote-supporter"
        resp = await client.post(url, headers=admin["headers"])
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "supporter"

        again = await client.post(url, headers=admin["headers"])
        assert again.status_code == 400
        assert again.json()["error"] == "ROLE_UNCHANGED"

    async def test_promote_to_admin_and_demote(self, client, admin, alice, supporter):
        resp = await client.post(f"/users/{supporter['id']}/demote", headers=admin["headers"])
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "user"

        resp = await client.post(f"/users/{alice['id']}/promote", headers=admin["headers"])
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "admin"

    async def test_admins_are_protected(self, app, client, admin, alice):
        await set_role(app, alice["email"], Role.ADMIN)
        for action in ("promote", "promote-supporter", "demote", "delete"):
            resp = await client.post(f"/users/{alice['id']}/{action}", headers=admin["headers"])
            assert resp.status_code == 403, action

    async def test_admin_cannot_delete_self(self, client, admin):
        resp = await client.post(f"/users/{admin['id']}/delete", headers=admin["headers"])
        assert resp.status_code == 403

    async def test_non_admin_cannot_change_roles(self, client, alice, bob):
        resp = await client.post(f"/users/{bob['id']}/promote-supporter", headers=alice["headers"])
        assert resp.status_code == 403

    async def test_missing_user(self, client, admin):
        resp = await client.post("/users/9999/promote", headers=admin["headers"])
        assert resp.status_code == 404

    async def test_delete_removes_tasks_and_comments(self, client, admin, alice, bob):
        task = await submit_ok(client, alice)
        other = await submit_ok(client, bob)
        await client.post(f"/comments/{task['id']}", json={"content": "mine"}, headers=alice["headers"])
        await set_role_supporter_and_comment(client, admin, alice, other)

        resp = await client.post(f"/users/{alice['id']}/delete", headers=admin["headers"])
        assert resp.status_code == 200

        assert (await client.get(f"/tasks/{task['id']}", headers=admin["headers"])).status_code == 404
        comments = await client.get(f"/comments/{other['id']}", headers=admin["headers"])
        assert comments.json()["comments"] == []
        assert (await client.get("/users/me", headers=alice["headers"])).status_code == 401


async def set_role_supporter_and_comment(client, admin, author, task):
    """Let ``author`` leave a comment on someone else's task."""
    await client.post(f"/users/{author['id']}/promote-supporter", headers=admin["headers"])
    resp = await client.post(f"/comments/{task['id']}", json={"content": "looks good"}, headers=author["headers"])
    assert resp.status_code == 201
