"""
Authentication and Authorization module.

Provides:
- JWT token generation and validation (access and refresh tokens)
- Password hashing (Argon2id)
- Role-based access control (fts_api.auth.dependencies)
- Activity logging for request handlers (fts_api.auth.audit)

Only the leaf modules are re-exported here; the service and dependency
modules import the schemas and container and are imported directly.
"""

from fts_api.auth.password import (
    PasswordHasher,
    generate_temp_password,
    validate_password_strength,
)
from fts_api.auth.tokens import (
    AccessClaims,
    ExpiredTokenError,
    InvalidTokenError,
    RefreshClaims,
    TokenError,
    TokenService,
)

__all__ = [
    # Tokens
    "AccessClaims",
    "RefreshClaims",
    "TokenService",
    "TokenError",
    "InvalidTokenError",
    "ExpiredTokenError",
    # Password
    "PasswordHasher",
    "generate_temp_password",
    "validate_password_strength",
]
