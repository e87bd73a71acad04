"""
User management endpoints.

Requires the users.manage policy (super admin) for everything except
reading and updating your own account.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from fts_api.auth.audit import request_context
from fts_api.auth.dependencies import (
    get_container,
    get_current_identity,
    is_owner_or_role,
    require_policy,
)
from fts_api.auth.service import sanitize_user
from fts_api.auth.tokens import AccessClaims
from fts_api.core.container import Container
from fts_api.core.errors import ForbiddenError
from fts_api.models.user import UserRole
from fts_api.schemas.common import MessageResponse
from fts_api.schemas.user import (
    RoleCount,
    RoleUpdate,
    UserCreate,
    UserCreatedResponse,
    UserListResponse,
    UserPublic,
    UserStatsResponse,
    UserUpdate,
)

router = APIRouter()

manage_users = require_policy("users.manage")


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[UserRole] = None,
    search: Optional[str] = Query(None, max_length=100),
    identity: AccessClaims = Depends(manage_users),
    container: Container = Depends(get_container),
):
    """
    List all users with pagination and filtering.

    Requires: super_admin
    """
    result = await container.user_admin.list_users(page=page, limit=limit, search=search, role=role)
    return UserListResponse(
        users=[sanitize_user(u) for u in result.users],
        pagination=result.pagination,
    )


@router.post("", response_model=UserCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: Request,
    data: UserCreate,
    identity: AccessClaims = Depends(manage_users),
    container: Container = Depends(get_container),
):
    """
    Create a new user.

    Requires: super_admin

    If no password is provided, a temporary password is generated and
    returned once in the response.
    """
    user, temp_password = await container.user_admin.create_user(
        data, identity, request_context(request)
    )
    return UserCreatedResponse(user=sanitize_user(user), temporary_password=temp_password)


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(
    identity: AccessClaims = Depends(manage_users),
    container: Container = Depends(get_container),
):
    """
    User counts by role and the newest accounts.

    Requires: super_admin
    """
    stats = await container.user_admin.user_stats()
    return UserStatsResponse(
        total_users=stats.total_users,
        users_by_role=[RoleCount(role=r, count=c) for r, c in stats.users_by_role.items()],
        recent_users=[sanitize_user(u) for u in stats.recent_users],
    )


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(
    user_id: int,
    identity: AccessClaims = Depends(get_current_identity),
    container: Container = Depends(get_container),
):
    """
    Get a user by ID.

    Users can view themselves; super admins can view anyone.
    """
    if not is_owner_or_role(identity, user_id):
        raise ForbiddenError("You can only view your own account")
    return sanitize_user(await container.user_admin.get_user(user_id))


@router.put("/{user_id}", response_model=UserPublic)
async def update_user(
    request: Request,
    user_id: int,
    data: UserUpdate,
    identity: AccessClaims = Depends(get_current_identity),
    container: Container = Depends(get_container),
):
    """
    Update a user.

    Users can update their own name and email; only super admins can
    update other users or change roles.
    """
    if not is_owner_or_role(identity, user_id):
        raise ForbiddenError("You can only update your own account")
    user = await container.user_admin.update_user(user_id, data, identity, request_context(request))
    return sanitize_user(user)


@router.patch("/{user_id}/role", response_model=UserPublic)
async def change_user_role(
    request: Request,
    user_id: int,
    data: RoleUpdate,
    identity: AccessClaims = Depends(manage_users),
    container: Container = Depends(get_container),
):
    """
    Change a user's role.

    Requires: super_admin. The last super admin cannot be demoted.
    """
    user = await container.user_admin.change_role(
        user_id, data.role, identity, request_context(request)
    )
    return sanitize_user(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    request: Request,
    user_id: int,
    identity: AccessClaims = Depends(manage_users),
    container: Container = Depends(get_container),
):
    """
    Delete a user. Their activity entries are kept.

    Requires: super_admin. Cannot delete yourself or the last super admin.
    """
    await container.user_admin.delete_user(user_id, identity, request_context(request))
    return MessageResponse(message="User deleted successfully")
