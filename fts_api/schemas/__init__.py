"""
Pydantic schemas for API request/response validation.

These schemas provide:
- Input validation with security constraints (unknown fields rejected)
- Output serialization with camelCase aliases
- OpenAPI documentation generation
"""

from fts_api.schemas.auth import (
    AuthResponse,
    LoginRequest,
    PasswordChangeRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenPair,
    TokenRefreshRequest,
    TokenRefreshResponse,
)
from fts_api.schemas.user import (
    RoleUpdate,
    UserCreate,
    UserCreatedResponse,
    UserListResponse,
    UserPublic,
    UserStatsResponse,
    UserUpdate,
)
from fts_api.schemas.activity import (
    ActivityLogEntry,
    ActivityLogListResponse,
    ActivityStatsResponse,
)
from fts_api.schemas.common import (
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    PaginationMeta,
)

__all__ = [
    # Auth
    "AuthResponse",
    "LoginRequest",
    "PasswordChangeRequest",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "RegisterRequest",
    "TokenPair",
    "TokenRefreshRequest",
    "TokenRefreshResponse",
    # User
    "RoleUpdate",
    "UserCreate",
    "UserCreatedResponse",
    "UserListResponse",
    "UserPublic",
    "UserStatsResponse",
    "UserUpdate",
    # Activity
    "ActivityLogEntry",
    "ActivityLogListResponse",
    "ActivityStatsResponse",
    # Common
    "ErrorResponse",
    "HealthResponse",
    "MessageResponse",
    "PaginationMeta",
]
