"""
FastAPI dependencies for authentication and authorization.

Provides:
- get_current_identity: Verify the bearer access token and expose its claims
- get_optional_identity: Same, but anonymous callers pass through as None
- require_role / RoleChecker: Exact role set membership, no hierarchy
- require_policy: Role sets looked up by name in ACCESS_POLICIES

Ownership ("own record unless super admin") is not decided here; handlers
call is_owner_or_role with the id of the resource they loaded.
"""

import logging
from typing import Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fts_api.auth.tokens import AccessClaims, ExpiredTokenError, TokenError
from fts_api.core.container import Container
from fts_api.core.errors import ForbiddenError, UnauthorizedError
from fts_api.models.user import UserRole

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer(auto_error=False)

# Route groups and the roles allowed to use them. Every role is listed
# explicitly; super_admin does not inherit admin.
ACCESS_POLICIES: dict[str, frozenset[UserRole]] = {
    "activity.read_all": frozenset({UserRole.SUPER_ADMIN}),
    "activity.export": frozenset({UserRole.SUPER_ADMIN}),
    "users.manage": frozenset({UserRole.SUPER_ADMIN}),
    "admin.stats": frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN}),
}


def get_container(request: Request) -> Container:
    """Process-wide services built by create_app."""
    return request.app.state.container


def _verify(container: Container, token: str) -> AccessClaims:
    try:
        return container.tokens.verify_access_token(token)
    except ExpiredTokenError as e:
        raise UnauthorizedError("Access token has expired") from e
    except TokenError as e:
        raise UnauthorizedError("Invalid access token") from e


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    container: Container = Depends(get_container),
) -> AccessClaims:
    """
    Verify the access token from the Authorization header.

    The claims are also stored on request.state.identity.

    Raises:
        UnauthorizedError: token missing, invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Access token is required")

    identity = _verify(container, credentials.credentials)
    request.state.identity = identity
    return identity


async def get_optional_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    container: Container = Depends(get_container),
) -> Optional[AccessClaims]:
    """
    Try to identify the caller, but return None if not authenticated.
    A bad or expired token is treated like a missing one.
    """
    request.state.identity = None
    if credentials is None or not credentials.credentials:
        return None

    try:
        identity = _verify(container, credentials.credentials)
    except UnauthorizedError as e:
        logger.debug("Continuing anonymously: %s", e.message)
        return None

    request.state.identity = identity
    return identity


class RoleChecker:
    """
    Class-based dependency for role checking.

    Usage:
        admins_only = RoleChecker([UserRole.ADMIN, UserRole.SUPER_ADMIN])

        @router.get("/")
        async def endpoint(identity: AccessClaims = Depends(admins_only)):
            ...
    """

    def __init__(self, allowed_roles: Iterable[UserRole]):
        self.allowed_roles = frozenset(allowed_roles)

    async def __call__(
        self,
        identity: AccessClaims = Depends(get_current_identity),
    ) -> AccessClaims:
        if identity.role not in self.allowed_roles:
            logger.info(
                "Forbidden: user %s with role %s, allowed %s",
                identity.id,
                identity.role.value,
                sorted(r.value for r in self.allowed_roles),
            )
            raise ForbiddenError()
        return identity


def require_role(*allowed_roles: UserRole) -> RoleChecker:
    """
    Dependency to require specific role(s).

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(
            identity: AccessClaims = Depends(require_role(UserRole.ADMIN))
        ):
            ...
    """
    return RoleChecker(allowed_roles)


def require_policy(name: str) -> RoleChecker:
    """Role dependency for a named entry of ACCESS_POLICIES."""
    return RoleChecker(ACCESS_POLICIES[name])


def is_owner_or_role(
    identity: AccessClaims,
    owner_id: Optional[int],
    roles: Iterable[UserRole] = (UserRole.SUPER_ADMIN,),
) -> bool:
    """True when the caller owns the resource or holds one of `roles`."""
    if owner_id is not None and identity.id == owner_id:
        return True
    return identity.role in frozenset(roles)
