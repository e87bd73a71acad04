import pytest
from pydantic import ValidationError

from conftest import ACCESS_SECRET, REFRESH_SECRET, make_settings
from fts_api.core.config import Settings, clear_settings_cache, get_settings
from fts_api.models.user import UserRole


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("JWT_SECRET", "JWT_REFRESH_SECRET", "CORS_ALLOW_ORIGINS", "DEFAULT_USER_ROLE"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


def test_secrets_are_required():
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_blank_secret_rejected(tmp_path):
    with pytest.raises(ValidationError):
        make_settings(tmp_path, jwt_secret="   ")


def test_secrets_must_differ(tmp_path):
    with pytest.raises(ValidationError, match="must be different"):
        make_settings(tmp_path, jwt_refresh_secret=ACCESS_SECRET)


def test_defaults(tmp_path):
    settings = make_settings(tmp_path)
    assert settings.jwt_access_expire_minutes == 15
    assert settings.jwt_refresh_expire_days == 7
    assert settings.default_user_role == UserRole.USER
    assert settings.get_trusted_hosts() == ["*"]
    assert settings.get_cors_allow_origins() == []
    assert "test-access" not in repr(settings)


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", ACCESS_SECRET)
    monkeypatch.setenv("JWT_REFRESH_SECRET", REFRESH_SECRET)
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://localhost:3000, https://fts.example.com")
    monkeypatch.setenv("DEFAULT_USER_ROLE", "admin")

    settings = get_settings()
    assert settings.jwt_secret.get_secret_value() == ACCESS_SECRET
    assert settings.get_cors_allow_origins() == ["http://localhost:3000", "https://fts.example.com"]
    assert settings.default_user_role == UserRole.ADMIN
    assert get_settings() is settings
