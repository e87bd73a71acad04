"""
SQLAlchemy credential store.

Each operation runs in its own short-lived session so that concurrent
requests only meet at the database constraints. Email uniqueness is
enforced by the unique index; a violation surfaces as DuplicateEmailError.
Writes that could remove the last super admin carry that condition in the
statement itself and raise LastSuperAdminError when it does not hold.
"""

import asyncio
import logging
import secrets
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from fts_api.models.user import User, UserRole

logger = logging.getLogger(__name__)


class DuplicateEmailError(Exception):
    """Raised when an insert or update collides with an existing email."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already registered: {email}")


class LastSuperAdminError(Exception):
    """Raised when a role change or delete would leave no super admin."""

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} is the last super admin")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _keeps_a_super_admin():
    """Row condition: not a super admin, or not the only one."""
    others = aliased(User)
    super_admins = (
        select(func.count(others.id))
        .where(others.role == UserRole.SUPER_ADMIN)
        .scalar_subquery()
    )
    return or_(User.role != UserRole.SUPER_ADMIN, super_admins > 1)


class UserRepository:
    """Lookup, create, update and delete identities."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        # Serialises guarded writes within this process
        self._super_admin_lock = asyncio.Lock()

    async def get_by_id(self, user_id: int) -> Optional[User]:
        async with self._session_maker() as session:
            return await session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(User).where(User.email == normalize_email(email))
            )
            return result.scalar_one_or_none()

    async def create(
        self,
        email: str,
        name: str,
        password_hash: str,
        role: UserRole = UserRole.USER,
    ) -> User:
        email = normalize_email(email)
        user = User(
            email=email,
            name=name.strip(),
            password_hash=password_hash,
            role=role,
            # Random start so refresh tokens never match a later account
            token_version=secrets.randbelow(1 << 30),
        )
        async with self._session_maker() as session:
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateEmailError(email) from e
            await session.refresh(user)
        return user

    async def update(
        self,
        user_id: int,
        keep_super_admin: bool = False,
        **fields: Any,
    ) -> Optional[User]:
        """
        Apply column updates; returns None when the user does not exist.

        With keep_super_admin the update only applies if the user is not the
        last super admin, otherwise LastSuperAdminError is raised.
        """
        if not fields:
            return await self.get_by_id(user_id)
        email = fields.get("email")
        if email is not None:
            email = fields["email"] = normalize_email(email)

        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        if keep_super_admin:
            async with self._super_admin_lock:
                return await self._apply(user_id, stmt.where(_keeps_a_super_admin()), email, True)
        return await self._apply(user_id, stmt, email, False)

    async def _apply(self, user_id: int, stmt, email: Optional[str], guarded: bool) -> Optional[User]:
        async with self._session_maker() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateEmailError(email or "") from e
            user = await session.get(User, user_id)
        if result.rowcount == 0:
            if guarded and user is not None:
                raise LastSuperAdminError(user_id)
            return None
        return user

    async def bump_token_version(self, user_id: int) -> Optional[int]:
        """Atomically increment token_version and return the new value."""
        async with self._session_maker() as session:
            result = await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(token_version=User.token_version + 1)
            )
            if result.rowcount == 0:
                await session.rollback()
                return None
            new_version = (
                await session.execute(select(User.token_version).where(User.id == user_id))
            ).scalar_one()
            await session.commit()
            return new_version

    async def delete(self, user_id: int, keep_super_admin: bool = False) -> bool:
        """
        Delete a user; returns False when it does not exist.

        With keep_super_admin the last super admin is never deleted and
        LastSuperAdminError is raised instead.
        """
        stmt = delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
        if not keep_super_admin:
            return await self._delete(user_id, stmt, False)
        async with self._super_admin_lock:
            return await self._delete(user_id, stmt.where(_keeps_a_super_admin()), True)

    async def _delete(self, user_id: int, stmt, guarded: bool) -> bool:
        async with self._session_maker() as session:
            result = await session.execute(stmt)
            await session.commit()
            if result.rowcount > 0:
                return True
            if guarded and await session.get(User, user_id) is not None:
                raise LastSuperAdminError(user_id)
            return False

    async def list(
        self,
        offset: int = 0,
        limit: int = 10,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
    ) -> tuple[list[User], int]:
        query = select(User)
        count_query = select(func.count(User.id))

        if role:
            query = query.where(User.role == role)
            count_query = count_query.where(User.role == role)

        if search:
            search_filter = f"%{search.lower()}%"
            condition = or_(User.email.ilike(search_filter), User.name.ilike(search_filter))
            query = query.where(condition)
            count_query = count_query.where(condition)

        async with self._session_maker() as session:
            total = (await session.execute(count_query)).scalar() or 0
            result = await session.execute(
                query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit)
            )
            return list(result.scalars().all()), total

    async def count(self) -> int:
        async with self._session_maker() as session:
            return (await session.execute(select(func.count(User.id)))).scalar() or 0

    async def count_by_role(self) -> dict[UserRole, int]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(User.role, func.count(User.id)).group_by(User.role)
            )
            counts = {role: 0 for role in UserRole}
            for role, count in result.all():
                counts[UserRole(role)] = count
            return counts
