"""
Composition root.

One Container is built per process by create_app and stored on
app.state.container; request handlers reach it through
fts_api.auth.dependencies.get_container.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fts_api.auth.password import PasswordHasher
from fts_api.auth.service import AuthService
from fts_api.auth.tokens import Clock, TokenService, utc_now
from fts_api.core.config import Settings
from fts_api.core.database import build_engine, build_session_maker
from fts_api.repositories.activity import ActivityLogRepository
from fts_api.repositories.users import UserRepository
from fts_api.services.activity_log import ActivityLogService
from fts_api.services.users import UserAdminService


@dataclass
class Container:
    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    users: UserRepository
    hasher: PasswordHasher
    tokens: TokenService
    activity_log: ActivityLogService
    auth: AuthService
    user_admin: UserAdminService


def build_container(
    settings: Settings,
    clock: Optional[Clock] = None,
    activity_repository: Optional[ActivityLogRepository] = None,
) -> Container:
    """
    Wire repositories and services from settings.

    `clock` drives token issue and expiry; `activity_repository` replaces
    the SQLAlchemy activity store (tests inject a failing one).
    """
    engine = build_engine(settings.database_url, echo=settings.sql_debug)
    session_maker = build_session_maker(engine)

    users = UserRepository(session_maker)
    activity_log = ActivityLogService(activity_repository or ActivityLogRepository(session_maker))

    hasher = PasswordHasher(
        time_cost=settings.password_time_cost,
        memory_cost=settings.password_memory_cost,
        parallelism=settings.password_parallelism,
    )
    tokens = TokenService(
        access_secret=settings.jwt_secret.get_secret_value(),
        refresh_secret=settings.jwt_refresh_secret.get_secret_value(),
        access_expire_minutes=settings.jwt_access_expire_minutes,
        refresh_expire_days=settings.jwt_refresh_expire_days,
        issuer=settings.token_issuer,
        audience=settings.token_audience,
        clock=clock or utc_now,
    )

    return Container(
        settings=settings,
        engine=engine,
        session_maker=session_maker,
        users=users,
        hasher=hasher,
        tokens=tokens,
        activity_log=activity_log,
        auth=AuthService(
            users=users,
            hasher=hasher,
            tokens=tokens,
            activity_log=activity_log,
            default_role=settings.default_user_role,
        ),
        user_admin=UserAdminService(users=users, hasher=hasher, activity_log=activity_log),
    )
