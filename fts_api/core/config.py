"""
Application settings loaded from environment variables.

Values are read once at process start:
1. OS environment variables (highest priority)
2. A `.env` file in the working directory (or FTS_ENV_FILE)
3. Defaults below

Both JWT secrets are required. A missing, empty or shared secret is a
startup error rather than a silently generated development key.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fts_api.models.user import UserRole

# Base directory of the project (parent of 'fts_api')
BASE_DIR = Path(__file__).resolve().parent.parent.parent


def _resolve_env_file() -> Optional[Path]:
    env_file = os.getenv("FTS_ENV_FILE")
    if env_file:
        return Path(env_file)
    default = Path.cwd() / ".env"
    return default if default.exists() else None


class Settings(BaseSettings):
    """Process-wide configuration. Read-only after boot."""

    model_config = SettingsConfigDict(
        env_file=_resolve_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Security (MUST be set)
    jwt_secret: SecretStr
    jwt_refresh_secret: SecretStr

    # Token lifetimes
    jwt_access_expire_minutes: int = 15
    jwt_refresh_expire_days: int = 7
    token_issuer: str = "fts-api"
    token_audience: str = "fts-client"

    # Password hashing (argon2id work factor)
    password_time_cost: int = 3
    password_memory_cost: int = 65536
    password_parallelism: int = 4

    # Database
    database_url: str = f"sqlite+aiosqlite:///{BASE_DIR / 'fts.db'}"
    sql_debug: bool = False
    auto_create_schema: bool = True

    # Application
    app_name: str = "FTS Backend API"
    app_version: str = "1.0.0"
    debug: bool = False
    enable_docs: bool = True
    enable_hsts: bool = False
    cors_allow_origins: str = ""
    trusted_hosts: str = "*"
    log_level: str = "INFO"

    # Registration
    default_user_role: UserRole = UserRole.USER

    # Bootstrap super admin (created only when no users exist)
    default_admin_email: Optional[str] = None
    default_admin_password: Optional[SecretStr] = None
    default_admin_name: str = "Super Administrator"

    @field_validator("jwt_secret", "jwt_refresh_secret")
    @classmethod
    def _secret_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("JWT secrets must not be empty")
        return v

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _join_origins(cls, v: Any) -> str:
        if isinstance(v, list):
            return ",".join(v)
        return str(v) if v else ""

    @model_validator(mode="after")
    def _secrets_differ(self) -> "Settings":
        if self.jwt_secret.get_secret_value() == self.jwt_refresh_secret.get_secret_value():
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be different")
        return self

    def get_cors_allow_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

    def get_trusted_hosts(self) -> list[str]:
        return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings; raises pydantic ValidationError when secrets are missing."""
    return Settings()  # type: ignore[call-arg]


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for tests)."""
    get_settings.cache_clear()
