import re
from datetime import datetime, timedelta, timezone

import pytest

from conftest import auth_header, login, promote, register
from fts_api.models.user import UserRole


@pytest.fixture
def accounts(client):
    """A regular user and a super admin, each logged in once after registering."""
    alice = register(client, email="alice@example.com", name="Alice")
    register(client, email="root@example.com", name="Root")
    promote(client, "root@example.com", UserRole.SUPER_ADMIN)

    alice_token = login(client, email="alice@example.com")["tokens"]["accessToken"]
    root_token = login(client, email="root@example.com")["tokens"]["accessToken"]
    return {
        "alice_id": alice["user"]["id"],
        "alice": auth_header(alice_token),
        "root": auth_header(root_token),
    }


def test_logs_require_authentication(client):
    assert client.get("/api/activity/logs").status_code == 401


def test_regular_user_sees_only_own_entries(client, accounts):
    response = client.get("/api/activity/logs", headers=accounts["alice"])
    assert response.status_code == 200
    body = response.json()
    # register + login
    assert body["pagination"]["total"] == 2
    assert {e["userId"] for e in body["entries"]} == {accounts["alice_id"]}
    assert [e["action"] for e in body["entries"]] == ["LOGIN", "CREATE"]

    # userId filter is overridden for non super admins
    other = client.get("/api/activity/logs?userId=999", headers=accounts["alice"])
    assert other.json()["pagination"]["total"] == 2


def test_super_admin_sees_everything(client, accounts):
    response = client.get("/api/activity/logs", headers=accounts["root"])
    assert response.json()["pagination"]["total"] == 4

    filtered = client.get(
        f"/api/activity/logs?userId={accounts['alice_id']}&action=LOGIN",
        headers=accounts["root"],
    )
    entries = filtered.json()["entries"]
    assert len(entries) == 1
    assert entries[0]["user"]["email"] == "alice@example.com"
    assert entries[0]["resourceType"] == "auth"
    assert entries[0]["details"]["url"] == "/api/auth/login"


def test_logs_pagination_and_validation(client, accounts):
    page = client.get("/api/activity/logs?page=2&limit=1", headers=accounts["root"]).json()
    assert len(page["entries"]) == 1
    assert page["pagination"] == {
        "page": 2,
        "limit": 1,
        "total": 4,
        "totalPages": 4,
        "hasNext": True,
        "hasPrev": True,
    }

    assert client.get("/api/activity/logs?limit=1000", headers=accounts["root"]).status_code == 400
    assert client.get("/api/activity/logs?action=EXPLODE", headers=accounts["root"]).status_code == 400


def test_stats_scoped_to_caller(client, accounts):
    own = client.get("/api/activity/stats", headers=accounts["alice"]).json()
    assert own["totalCount"] == 2
    assert {c["action"]: c["count"] for c in own["countsByAction"]} == {"CREATE": 1, "LOGIN": 1}

    everything = client.get("/api/activity/stats", headers=accounts["root"]).json()
    assert everything["totalCount"] == 4
    assert {c["resourceType"]: c["count"] for c in everything["countsByResourceType"]} == {
        "auth": 2,
        "user": 2,
    }
    assert len(everything["recentEntries"]) == 4


def test_per_user_routes_are_super_admin_only(client, accounts):
    path = f"/api/activity/users/{accounts['alice_id']}"

    assert client.get(f"{path}/logs", headers=accounts["alice"]).status_code == 403
    assert client.get(f"{path}/stats", headers=accounts["alice"]).status_code == 403

    logs = client.get(f"{path}/logs", headers=accounts["root"])
    assert logs.status_code == 200
    assert logs.json()["pagination"]["total"] == 2

    stats = client.get(f"{path}/stats", headers=accounts["root"])
    assert stats.json()["totalCount"] == 2


def test_export(client, accounts):
    assert client.get("/api/activity/export", headers=accounts["alice"]).status_code == 403

    response = client.get("/api/activity/export", headers=accounts["root"])
    assert response.status_code == 200
    disposition = response.headers["Content-Disposition"]
    assert re.fullmatch(r'attachment; filename="activity-logs-\d{4}-\d{2}-\d{2}\.json"', disposition)

    body = response.json()
    assert body["count"] == 4
    assert len(body["entries"]) == 4
    assert "exportedAt" in body

    # The export itself is recorded
    logs = client.get("/api/activity/logs?action=EXPORT", headers=accounts["root"]).json()
    assert logs["pagination"]["total"] == 1
    assert logs["entries"][0]["details"]["count"] == 4


def test_date_range_with_offset(client, accounts):
    now = datetime.now(timezone.utc)
    start = (now - timedelta(hours=1)).astimezone(timezone(timedelta(hours=7)))
    end = (now + timedelta(hours=1)).astimezone(timezone(timedelta(hours=-5)))

    response = client.get(
        "/api/activity/logs",
        params={"startDate": start.isoformat(), "endDate": end.isoformat()},
        headers=accounts["root"],
    )
    assert response.status_code == 200
    assert response.json()["pagination"]["total"] == 4


def test_user_filter_alongside_per_user_route(client, accounts):
    root_logs = client.get(
        f"/api/activity/users/{accounts['alice_id']}/logs",
        params={"userId": 999},
        headers=accounts["root"],
    )
    # The path wins over the query string
    assert root_logs.json()["pagination"]["total"] == 2
