"""
User-related schemas.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from fts_api.models.user import UserRole
from fts_api.schemas.common import CamelModel, PaginationMeta, RequestModel


def sanitize_name(v: str) -> str:
    # Remove potentially dangerous characters
    cleaned = re.sub(r'[<>"\';\\]', "", v).strip()
    if not cleaned:
        raise ValueError("Name must not be empty")
    return cleaned


class UserPublic(CamelModel):
    """Identity as returned to clients. Never carries the password hash."""

    id: int
    email: str
    name: str
    role: UserRole
    created_at: datetime
    updated_at: datetime
    last_login: Optional[datetime] = None


class UserCreate(RequestModel):
    """Schema for a super admin creating a user."""

    email: EmailStr
    name: str = Field(min_length=1, max_length=100)
    role: UserRole = UserRole.USER
    password: Optional[str] = Field(
        default=None,
        min_length=8,
        max_length=128,
        description="Initial password. If not provided, a temporary password is generated.",
    )

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower().strip()

    @field_validator("name")
    @classmethod
    def clean_name(cls, v: str) -> str:
        return sanitize_name(v)


class UserUpdate(RequestModel):
    """Schema for updating a user. Role is honoured only for super admins."""

    email: Optional[EmailStr] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[UserRole] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.lower().strip()

    @field_validator("name")
    @classmethod
    def clean_name(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_name(v) if v is not None else None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UserUpdate":
        if self.email is None and self.name is None and self.role is None:
            raise ValueError("At least one field (name, email or role) is required")
        return self


class RoleUpdate(RequestModel):
    role: UserRole


class UserCreatedResponse(CamelModel):
    user: UserPublic
    temporary_password: Optional[str] = Field(
        default=None,
        description="Only present when the password was generated. Shown once.",
    )


class UserListResponse(CamelModel):
    """Paginated list of users."""

    users: List[UserPublic]
    pagination: PaginationMeta


class RoleCount(CamelModel):
    role: UserRole
    count: int


class UserStatsResponse(CamelModel):
    total_users: int
    users_by_role: List[RoleCount]
    recent_users: List[UserPublic]
