"""
Authentication-related schemas.
"""

from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from fts_api.auth.password import validate_password_strength
from fts_api.schemas.common import CamelModel, RequestModel
from fts_api.schemas.user import UserPublic, sanitize_name


class RegisterRequest(RequestModel):
    """Self-service registration. The role is always the default role."""

    email: EmailStr = Field(description="User email address")
    password: str = Field(min_length=8, max_length=128, description="User password")
    name: str = Field(min_length=1, max_length=100, description="Display name")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower().strip()

    @field_validator("name")
    @classmethod
    def clean_name(cls, v: str) -> str:
        return sanitize_name(v)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        ok, issues = validate_password_strength(v)
        if not ok:
            raise ValueError("; ".join(issues))
        return v


class LoginRequest(RequestModel):
    """Login request with email and password."""

    email: EmailStr = Field(description="User email address")
    password: str = Field(min_length=1, max_length=128, description="User password")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower().strip()


class TokenRefreshRequest(RequestModel):
    """Request to refresh access token."""

    refresh_token: str = Field(min_length=1, description="Current refresh token")


class ProfileUpdateRequest(RequestModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower().strip() if v is not None else None

    @field_validator("name")
    @classmethod
    def clean_name(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_name(v) if v is not None else None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "ProfileUpdateRequest":
        if self.email is None and self.name is None:
            raise ValueError("At least one field (name or email) is required")
        return self


class PasswordChangeRequest(RequestModel):
    """Request to change password."""

    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        ok, issues = validate_password_strength(v)
        if not ok:
            raise ValueError("; ".join(issues))
        return v


class TokenPair(CamelModel):
    access_token: str = Field(description="JWT access token")
    refresh_token: str = Field(description="JWT refresh token for token renewal")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(description="Access token expiration in seconds")


class AuthResponse(CamelModel):
    """Register/login response: sanitized user plus tokens."""

    user: UserPublic
    tokens: TokenPair


class TokenRefreshResponse(CamelModel):
    """Response with new access token."""

    access_token: str = Field(description="New JWT access token")
    token_type: str = Field(default="bearer")
    expires_in: int = Field(description="Access token expiration in seconds")


class ProfileResponse(CamelModel):
    user: UserPublic
