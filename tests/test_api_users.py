import pytest
from fastapi.testclient import TestClient

from conftest import auth_header, login, make_settings, promote, register
from fts_api.core.container import build_container
from fts_api.main import create_app
from fts_api.models.user import UserRole


@pytest.fixture
def root(client):
    register(client, email="root@example.com", name="Root")
    promote(client, "root@example.com", UserRole.SUPER_ADMIN)
    data = login(client, email="root@example.com")
    return {"id": data["user"]["id"], "headers": auth_header(data["tokens"]["accessToken"])}


@pytest.fixture
def alice(client):
    data = register(client, email="alice@example.com", name="Alice")
    return {"id": data["user"]["id"], "headers": auth_header(data["tokens"]["accessToken"])}


def test_list_users(client, root, alice):
    response = client.get("/api/users", headers=root["headers"])
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 2
    assert all("passwordHash" not in u for u in body["users"])

    search = client.get("/api/users?search=ALI", headers=root["headers"]).json()
    assert [u["email"] for u in search["users"]] == ["alice@example.com"]

    by_role = client.get("/api/users?role=super_admin", headers=root["headers"]).json()
    assert [u["email"] for u in by_role["users"]] == ["root@example.com"]


def test_user_management_requires_super_admin(client, root, alice):
    assert client.get("/api/users", headers=alice["headers"]).status_code == 403
    assert client.get("/api/users/stats", headers=alice["headers"]).status_code == 403
    assert client.post(
        "/api/users",
        json={"email": "x@example.com", "name": "Xavier"},
        headers=alice["headers"],
    ).status_code == 403


def test_admin_is_not_super_admin(client, root):
    register(client, email="admin@example.com", name="Admin")
    promote(client, "admin@example.com", UserRole.ADMIN)
    headers = auth_header(login(client, email="admin@example.com")["tokens"]["accessToken"])

    assert client.get("/api/users", headers=headers).status_code == 403
    assert client.get("/api/admin/stats", headers=headers).status_code == 200


def test_create_user_with_generated_password(client, root):
    response = client.post(
        "/api/users",
        json={"email": "New@Example.com", "name": "Newbie", "role": "admin"},
        headers=root["headers"],
    )
    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "admin"
    temp = body["temporaryPassword"]
    assert temp

    assert login(client, email="new@example.com", password=temp)["user"]["role"] == "admin"

    duplicate = client.post(
        "/api/users",
        json={"email": "new@example.com", "name": "Again"},
        headers=root["headers"],
    )
    assert duplicate.status_code == 409


def test_create_user_with_password(client, root):
    response = client.post(
        "/api/users",
        json={"email": "bob@example.com", "name": "Bob", "password": "Passw0rd!"},
        headers=root["headers"],
    )
    assert response.status_code == 201
    assert response.json()["temporaryPassword"] is None

    weak = client.post(
        "/api/users",
        json={"email": "weak@example.com", "name": "Weak", "password": "lettersonly"},
        headers=root["headers"],
    )
    assert weak.status_code == 400


def test_get_user_owner_or_super_admin(client, root, alice):
    own = client.get(f"/api/users/{alice['id']}", headers=alice["headers"])
    assert own.status_code == 200
    assert own.json()["email"] == "alice@example.com"

    other = client.get(f"/api/users/{root['id']}", headers=alice["headers"])
    assert other.status_code == 403

    assert client.get(f"/api/users/{alice['id']}", headers=root["headers"]).status_code == 200
    assert client.get("/api/users/9999", headers=root["headers"]).status_code == 404


def test_update_user(client, root, alice):
    own = client.put(f"/api/users/{alice['id']}", json={"name": "Alice A"}, headers=alice["headers"])
    assert own.status_code == 200
    assert own.json()["name"] == "Alice A"

    # Owners cannot change their own role
    escalate = client.put(f"/api/users/{alice['id']}", json={"role": "admin"}, headers=alice["headers"])
    assert escalate.status_code == 403

    other = client.put(f"/api/users/{root['id']}", json={"name": "Hacked"}, headers=alice["headers"])
    assert other.status_code == 403

    by_root = client.put(
        f"/api/users/{alice['id']}",
        json={"name": "Alice R", "role": "admin"},
        headers=root["headers"],
    )
    assert by_root.status_code == 200
    assert by_root.json()["role"] == "admin"


def test_change_role_and_last_super_admin(client, root, alice):
    response = client.patch(
        f"/api/users/{alice['id']}/role",
        json={"role": "super_admin"},
        headers=root["headers"],
    )
    assert response.status_code == 200
    assert response.json()["role"] == "super_admin"

    # Two super admins: root may step down
    demote = client.patch(f"/api/users/{root['id']}/role", json={"role": "user"}, headers=root["headers"])
    assert demote.status_code == 200

    alice_token = login(client, email="alice@example.com")["tokens"]["accessToken"]
    last = client.patch(
        f"/api/users/{alice['id']}/role",
        json={"role": "user"},
        headers=auth_header(alice_token),
    )
    assert last.status_code == 409
    assert last.json()["error"] == "Conflict"

    logs = client.get("/api/activity/logs?action=ROLE_CHANGE", headers=auth_header(alice_token)).json()
    assert logs["pagination"]["total"] == 2


def test_delete_user(client, root, alice):
    assert client.delete(f"/api/users/{alice['id']}", headers=alice["headers"]).status_code == 403

    self_delete = client.delete(f"/api/users/{root['id']}", headers=root["headers"])
    assert self_delete.status_code == 403

    response = client.delete(f"/api/users/{alice['id']}", headers=root["headers"])
    assert response.status_code == 200
    assert client.get(f"/api/users/{alice['id']}", headers=root["headers"]).status_code == 404
    assert client.delete(f"/api/users/{alice['id']}", headers=root["headers"]).status_code == 404

    # Alice's registration entry outlives her account
    logs = client.get("/api/activity/logs?resourceType=user&action=CREATE", headers=root["headers"]).json()
    emails = {e["userEmail"] for e in logs["entries"]}
    assert "alice@example.com" in emails


def test_user_stats(client, root, alice):
    body = client.get("/api/users/stats", headers=root["headers"]).json()
    assert body["totalUsers"] == 2
    assert {r["role"]: r["count"] for r in body["usersByRole"]} == {
        "user": 1,
        "admin": 0,
        "super_admin": 1,
    }
    assert len(body["recentUsers"]) == 2


def test_admin_stats(client, root, alice):
    assert client.get("/api/admin/stats", headers=alice["headers"]).status_code == 403

    body = client.get("/api/admin/stats", headers=root["headers"]).json()
    assert body["totalUsers"] == 2
    assert body["totalActivity"] == 3
    assert {a["action"]: a["count"] for a in body["activityByAction"]} == {"CREATE": 2, "LOGIN": 1}


def test_bootstrap_super_admin(tmp_path, clock):
    settings = make_settings(
        tmp_path,
        default_admin_email="Owner@Example.com",
        default_admin_password="R00tPassword",
    )
    app = create_app(container=build_container(settings, clock=clock))
    with TestClient(app) as client:
        data = login(client, email="owner@example.com", password="R00tPassword")
    assert data["user"]["role"] == "super_admin"

    # Second start does not create another account
    app = create_app(container=build_container(settings, clock=clock))
    with TestClient(app) as client:
        total = client.portal.call(client.app.state.container.users.count)
    assert total == 1


def test_bootstrap_generates_password(tmp_path, clock, capsys):
    settings = make_settings(tmp_path, default_admin_email="owner@example.com")
    with TestClient(create_app(container=build_container(settings, clock=clock))) as client:
        printed = capsys.readouterr().out
        password = next(
            line.split("Password:", 1)[1].strip()
            for line in printed.splitlines()
            if "Password:" in line
        )
        assert login(client, email="owner@example.com", password=password)


def test_update_user_email_conflict(client, root, alice):
    response = client.put(
        f"/api/users/{alice['id']}",
        json={"email": "Root@Example.com"},
        headers=root["headers"],
    )
    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"


def test_refresh_token_of_deleted_user_stays_dead(client, root):
    alice = register(client, email="alice@example.com", name="Alice")
    refresh = alice["tokens"]["refreshToken"]
    assert client.delete(f"/api/users/{alice['user']['id']}", headers=root["headers"]).status_code == 200

    bob = register(client, email="bob@example.com", name="Bob")
    assert bob["user"]["id"] != alice["user"]["id"]

    response = client.post("/api/auth/refresh", json={"refreshToken": refresh})
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"
