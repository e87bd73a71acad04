from datetime import datetime, timedelta, timezone
from functools import partial
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from fts_api.core.config import Settings
from fts_api.core.container import build_container
from fts_api.core.database import close_db, init_db
from fts_api.main import create_app
from fts_api.models.user import UserRole
from fts_api.repositories.activity import ActivityLogRepository

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-fedcba9876543210"

# Whole seconds: JWT timestamps carry no fractions
START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock for token issue and expiry."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        jwt_secret=ACCESS_SECRET,
        jwt_refresh_secret=REFRESH_SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        # Cheap argon2 parameters keep the suite fast
        password_time_cost=1,
        password_memory_cost=8,
        password_parallelism=1,
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


class FailingActivityRepository(ActivityLogRepository):
    """Activity store whose writes always fail."""

    async def add(self, entry):
        raise OperationalError("INSERT INTO activity_logs", {}, Exception("disk I/O error"))


def fake_user(id=1, email="a@b.com", name="A", role=UserRole.USER, token_version=0):
    return SimpleNamespace(id=id, email=email, name=name, role=role, token_version=token_version)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
async def container(settings, clock):
    container = build_container(settings, clock=clock)
    await init_db(container.engine)
    yield container
    await close_db(container.engine)


@pytest.fixture
def client(settings, clock):
    app = create_app(container=build_container(settings, clock=clock))
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


def register(client, email="a@b.com", password="Passw0rd!", name="Alice"):
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert response.status_code == 201, response.text
    return response.json()


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def promote(client, email: str, role: UserRole) -> None:
    """Set a role directly in the database, bypassing the API."""
    container = client.app.state.container
    user = client.portal.call(container.users.get_by_email, email)
    client.portal.call(partial(container.users.update, user.id, role=role))


def login(client, email="a@b.com", password="Passw0rd!") -> dict:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()
