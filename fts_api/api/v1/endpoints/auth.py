"""
Authentication endpoints.

Provides:
- Registration (email/password/name -> user + JWT tokens)
- Login (email/password -> user + JWT tokens)
- Token refresh
- Profile read and update
- Password change
- Logout

Refresh tokens travel in request bodies only, never in headers or cookies.
"""

from fastapi import APIRouter, Depends, Request, status

from fts_api.auth.audit import request_context
from fts_api.auth.dependencies import get_container, get_current_identity
from fts_api.auth.tokens import AccessClaims
from fts_api.core.container import Container
from fts_api.schemas.auth import (
    AuthResponse,
    LoginRequest,
    PasswordChangeRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenRefreshRequest,
    TokenRefreshResponse,
)
from fts_api.schemas.common import MessageResponse

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    data: RegisterRequest,
    container: Container = Depends(get_container),
):
    """
    Create an account with the default role and return tokens.

    Returns 409 if the email is already registered.
    """
    result = await container.auth.register(data, request_context(request))
    return AuthResponse(user=result.user, tokens=result.tokens)


@router.post("/login", response_model=AuthResponse)
async def login(
    request: Request,
    data: LoginRequest,
    container: Container = Depends(get_container),
):
    """
    Authenticate user and return JWT tokens.

    Unknown email and wrong password get the same 401 response.
    """
    result = await container.auth.login(data, request_context(request))
    return AuthResponse(user=result.user, tokens=result.tokens)


@router.post("/refresh", response_model=TokenRefreshResponse)
async def refresh_token(
    data: TokenRefreshRequest,
    container: Container = Depends(get_container),
):
    """
    Get a new access token using a refresh token.

    The refresh token itself is not rotated.
    """
    result = await container.auth.refresh(data.refresh_token)
    return TokenRefreshResponse(access_token=result.access_token, expires_in=result.expires_in)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    identity: AccessClaims = Depends(get_current_identity),
    container: Container = Depends(get_container),
):
    """Get the current user's profile."""
    return ProfileResponse(user=await container.auth.get_profile(identity.id))


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    request: Request,
    data: ProfileUpdateRequest,
    identity: AccessClaims = Depends(get_current_identity),
    container: Container = Depends(get_container),
):
    """Update the current user's name and/or email."""
    user = await container.auth.update_profile(identity.id, data, request_context(request))
    return ProfileResponse(user=user)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: Request,
    data: PasswordChangeRequest,
    identity: AccessClaims = Depends(get_current_identity),
    container: Container = Depends(get_container),
):
    """
    Change the current user's password.

    Requires the current password. Outstanding refresh tokens stop working.
    """
    await container.auth.change_password(identity.id, data, request_context(request))
    return MessageResponse(message="Password changed successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    identity: AccessClaims = Depends(get_current_identity),
    container: Container = Depends(get_container),
):
    """
    Logout current user.

    Revokes refresh tokens; the access token in use expires on its own.
    """
    await container.auth.logout(identity, request_context(request))
    return MessageResponse(message="Successfully logged out")
