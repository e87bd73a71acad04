"""
User administration.

Account management performed by a super admin on behalf of others, plus the
owner-or-super-admin updates of a single account. Whether the caller may
reach an operation at all is decided by the router; the rules here are the
ones that depend on the data (the last super admin, deleting yourself).
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fts_api.auth.password import PasswordHasher, generate_temp_password, validate_password_strength
from fts_api.auth.tokens import AccessClaims
from fts_api.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from fts_api.models.activity import ActivityAction
from fts_api.models.user import User, UserRole
from fts_api.repositories.users import DuplicateEmailError, LastSuperAdminError, UserRepository
from fts_api.schemas.common import PaginationMeta
from fts_api.schemas.user import UserCreate, UserUpdate
from fts_api.services.activity_log import ActivityLogService, RequestContext, record_activity

logger = logging.getLogger(__name__)

RECENT_USERS = 5
LAST_SUPER_ADMIN = "Cannot remove the last super admin"


@dataclass
class UserPage:
    users: list[User]
    pagination: PaginationMeta


@dataclass
class UserStats:
    total_users: int
    users_by_role: dict[UserRole, int]
    recent_users: list[User]


class UserAdminService:
    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        activity_log: ActivityLogService,
    ):
        self._users = users
        self._hasher = hasher
        self._activity_log = activity_log

    async def _record(
        self,
        actor: AccessClaims,
        action: ActivityAction,
        target_id: int,
        details: dict,
        context: Optional[RequestContext],
    ) -> None:
        await record_activity(
            self._activity_log,
            context,
            user_id=actor.id,
            user_email=actor.email,
            action=action,
            resource_type="user",
            resource_id=target_id,
            details=details,
        )

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
    ) -> UserPage:
        users, total = await self._users.list(
            offset=(page - 1) * limit,
            limit=limit,
            search=search,
            role=role,
        )
        return UserPage(users=users, pagination=PaginationMeta.create(page, limit, total))

    async def get_user(self, user_id: int) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def create_user(
        self,
        data: UserCreate,
        actor: AccessClaims,
        context: Optional[RequestContext] = None,
    ) -> tuple[User, Optional[str]]:
        """
        Create an account.

        If no password is provided a temporary one is generated and returned
        alongside the user; it is not stored anywhere in clear text.
        """
        temp_password = None
        if data.password:
            ok, issues = validate_password_strength(data.password)
            if not ok:
                raise ValidationError("; ".join(issues))
            password = data.password
        else:
            temp_password = password = generate_temp_password()

        password_hash = await self._hasher.hash_async(password)
        try:
            user = await self._users.create(
                email=data.email,
                name=data.name,
                password_hash=password_hash,
                role=data.role,
            )
        except DuplicateEmailError as e:
            raise ConflictError("User with this email already exists") from e

        logger.info("User %s created by %s with role %s", user.id, actor.id, user.role.value)
        await self._record(
            actor,
            ActivityAction.CREATE,
            user.id,
            {"message": "User created", "email": user.email, "role": user.role.value},
            context,
        )
        return user, temp_password

    async def update_user(
        self,
        user_id: int,
        data: UserUpdate,
        actor: AccessClaims,
        context: Optional[RequestContext] = None,
    ) -> User:
        """
        Update name, email and (super admin only) role.

        Raises:
            ForbiddenError: caller is neither the owner nor a super admin, or
                a non super admin tries to change a role
        """
        is_super_admin = actor.role == UserRole.SUPER_ADMIN
        if actor.id != user_id and not is_super_admin:
            raise ForbiddenError("You can only update your own account")
        if data.role is not None and not is_super_admin:
            raise ForbiddenError("Only a super admin can change roles")

        fields = data.model_dump(exclude_none=True)
        try:
            updated = await self._users.update(
                user_id,
                keep_super_admin=data.role is not None and data.role != UserRole.SUPER_ADMIN,
                **fields,
            )
        except DuplicateEmailError as e:
            raise ConflictError("User with this email already exists") from e
        except LastSuperAdminError as e:
            raise ConflictError(LAST_SUPER_ADMIN) from e
        if updated is None:
            raise NotFoundError("User not found")

        await self._record(
            actor,
            ActivityAction.UPDATE,
            updated.id,
            {"message": "User updated", "updated_fields": sorted(fields)},
            context,
        )
        return updated

    async def change_role(
        self,
        user_id: int,
        role: UserRole,
        actor: AccessClaims,
        context: Optional[RequestContext] = None,
    ) -> User:
        user = await self.get_user(user_id)
        old_role = user.role
        if role == old_role:
            return user
        try:
            updated = await self._users.update(
                user_id,
                keep_super_admin=role != UserRole.SUPER_ADMIN,
                role=role,
            )
        except LastSuperAdminError as e:
            raise ConflictError(LAST_SUPER_ADMIN) from e
        if updated is None:
            raise NotFoundError("User not found")

        logger.info(
            "Role of user %s changed from %s to %s by %s",
            user_id, old_role.value, role.value, actor.id,
        )
        await self._record(
            actor,
            ActivityAction.ROLE_CHANGE,
            user_id,
            {"message": "Role changed", "old_role": old_role.value, "new_role": role.value},
            context,
        )
        return updated

    async def delete_user(
        self,
        user_id: int,
        actor: AccessClaims,
        context: Optional[RequestContext] = None,
    ) -> None:
        """
        Delete an account. Its activity entries are kept, detached from it.

        Raises:
            ForbiddenError: deleting your own account
            ConflictError: deleting the last super admin
        """
        if actor.id == user_id:
            raise ForbiddenError("You cannot delete your own account")

        user = await self.get_user(user_id)
        try:
            deleted = await self._users.delete(user_id, keep_super_admin=True)
        except LastSuperAdminError as e:
            raise ConflictError(LAST_SUPER_ADMIN) from e
        if not deleted:
            raise NotFoundError("User not found")

        logger.info("User %s deleted by %s", user_id, actor.id)
        await self._record(
            actor,
            ActivityAction.DELETE,
            user_id,
            {"message": "User deleted", "email": user.email},
            context,
        )

    async def user_stats(self) -> UserStats:
        users, total = await self._users.list(offset=0, limit=RECENT_USERS)
        return UserStats(
            total_users=total,
            users_by_role=await self._users.count_by_role(),
            recent_users=users,
        )
