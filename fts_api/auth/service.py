"""
Authentication orchestration: register, login, refresh and profile upkeep.

Every identity that leaves this module goes through sanitize_user, so the
password hash never reaches a response. Activity entries are written after
the operation succeeded and their failure never fails the operation.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from fts_api.auth.password import PasswordHasher
from fts_api.auth.tokens import (
    AccessClaims,
    ExpiredTokenError,
    TokenError,
    TokenService,
)
from fts_api.core.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from fts_api.models.activity import ActivityAction
from fts_api.models.user import User, UserRole
from fts_api.repositories.users import DuplicateEmailError, UserRepository
from fts_api.schemas.auth import (
    LoginRequest,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenPair,
)
from fts_api.schemas.user import UserPublic
from fts_api.services.activity_log import ActivityLogService, RequestContext, record_activity

logger = logging.getLogger(__name__)

EMAIL_TAKEN = "User with this email already exists"


def sanitize_user(user: User) -> UserPublic:
    """Public view of an identity, without credentials."""
    return UserPublic.model_validate(user)


@dataclass
class AuthResult:
    user: UserPublic
    tokens: TokenPair


@dataclass
class TokenRefreshResult:
    access_token: str
    expires_in: int


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        tokens: TokenService,
        activity_log: ActivityLogService,
        default_role: UserRole = UserRole.USER,
    ):
        self._users = users
        self._hasher = hasher
        self._tokens = tokens
        self._activity_log = activity_log
        self._default_role = default_role
        self._dummy_hash: Optional[str] = None

    def _issue_token_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self._tokens.issue_access_token(user),
            refresh_token=self._tokens.issue_refresh_token(user),
            expires_in=self._tokens.access_expires_in,
        )

    async def _record(
        self,
        user: User,
        action: ActivityAction,
        resource_type: str,
        context: Optional[RequestContext],
        details: Optional[dict] = None,
        resource_id: Optional[int] = None,
    ) -> None:
        await record_activity(
            self._activity_log,
            context,
            user_id=user.id,
            user_email=user.email,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
        )

    async def _load(self, user_id: int) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def register(
        self, data: RegisterRequest, context: Optional[RequestContext] = None
    ) -> AuthResult:
        """
        Create an identity with the default role and sign it in.

        Raises:
            ConflictError: the email is already registered, including when a
                concurrent registration wins the insert
        """
        if await self._users.get_by_email(data.email) is not None:
            raise ConflictError(EMAIL_TAKEN)

        password_hash = await self._hasher.hash_async(data.password)
        try:
            user = await self._users.create(
                email=data.email,
                name=data.name,
                password_hash=password_hash,
                role=self._default_role,
            )
        except DuplicateEmailError as e:
            raise ConflictError(EMAIL_TAKEN) from e

        tokens = self._issue_token_pair(user)
        logger.info("New user registered: id=%s role=%s", user.id, user.role.value)

        await self._record(
            user,
            ActivityAction.CREATE,
            "user",
            context,
            details={"message": "User registered", "email": user.email},
            resource_id=user.id,
        )
        return AuthResult(user=sanitize_user(user), tokens=tokens)

    async def login(
        self, data: LoginRequest, context: Optional[RequestContext] = None
    ) -> AuthResult:
        """
        Authenticate with email and password.

        Unknown email and wrong password raise the same InvalidCredentialsError.
        """
        user = await self._users.get_by_email(data.email)
        if user is None:
            # Same hashing work as a real attempt
            if self._dummy_hash is None:
                self._dummy_hash = await self._hasher.hash_async(secrets.token_urlsafe(16))
            await self._hasher.verify_async(data.password, self._dummy_hash)
            logger.info("Failed login attempt for unknown email")
            raise InvalidCredentialsError()

        if not await self._hasher.verify_async(data.password, user.password_hash):
            logger.info("Failed login attempt for user %s", user.id)
            raise InvalidCredentialsError()

        updates: dict = {"last_login": self._tokens.now()}
        if self._hasher.needs_rehash(user.password_hash):
            updates["password_hash"] = await self._hasher.hash_async(data.password)
        user = await self._users.update(user.id, **updates) or user

        tokens = self._issue_token_pair(user)
        await self._record(
            user,
            ActivityAction.LOGIN,
            "auth",
            context,
            details={"message": "User logged in"},
        )
        return AuthResult(user=sanitize_user(user), tokens=tokens)

    async def refresh(self, refresh_token: str) -> TokenRefreshResult:
        """
        Mint a new access token from a refresh token.

        The refresh token is rejected once its user logged out or changed
        password after it was issued.
        """
        try:
            claims = self._tokens.verify_refresh_token(refresh_token)
        except ExpiredTokenError as e:
            raise UnauthorizedError("Refresh token has expired") from e
        except TokenError as e:
            raise UnauthorizedError("Invalid refresh token") from e

        user = await self._load(claims.id)
        if claims.token_version != user.token_version:
            raise UnauthorizedError("Refresh token has been revoked")

        return TokenRefreshResult(
            access_token=self._tokens.issue_access_token(user),
            expires_in=self._tokens.access_expires_in,
        )

    async def get_profile(self, user_id: int) -> UserPublic:
        return sanitize_user(await self._load(user_id))

    async def update_profile(
        self,
        user_id: int,
        data: ProfileUpdateRequest,
        context: Optional[RequestContext] = None,
    ) -> UserPublic:
        fields = data.model_dump(exclude_none=True)
        try:
            user = await self._users.update(user_id, **fields)
        except DuplicateEmailError as e:
            raise ConflictError(EMAIL_TAKEN) from e
        if user is None:
            raise NotFoundError("User not found")

        await self._record(
            user,
            ActivityAction.UPDATE,
            "user",
            context,
            details={"message": "Profile updated", "updated_fields": sorted(fields)},
            resource_id=user.id,
        )
        return sanitize_user(user)

    async def change_password(
        self,
        user_id: int,
        data: PasswordChangeRequest,
        context: Optional[RequestContext] = None,
    ) -> None:
        """Replace the password and revoke every outstanding refresh token."""
        user = await self._load(user_id)
        if not await self._hasher.verify_async(data.current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        if data.current_password == data.new_password:
            raise ValidationError("New password must differ from the current password")

        new_hash = await self._hasher.hash_async(data.new_password)
        await self._users.update(user.id, password_hash=new_hash)
        await self._users.bump_token_version(user.id)
        logger.info("Password changed for user %s", user.id)

        await self._record(
            user,
            ActivityAction.PASSWORD_CHANGE,
            "auth",
            context,
            details={"message": "Password changed"},
        )

    async def logout(
        self, identity: AccessClaims, context: Optional[RequestContext] = None
    ) -> None:
        """
        Revoke the caller's refresh tokens.

        Access tokens already issued stay valid until they expire.
        """
        user = await self._load(identity.id)
        await self._users.bump_token_version(user.id)

        await self._record(
            user,
            ActivityAction.LOGOUT,
            "auth",
            context,
            details={"message": "User logged out"},
        )
