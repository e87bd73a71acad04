"""
JWT token handling.

Security measures:
- Short-lived access tokens (15 min default)
- Longer-lived refresh tokens (7 days default)
- Access and refresh tokens signed with different secrets
- Token type claim checked on every verification
- Issuer and audience validation
- Refresh tokens carry the user's token_version so they can be revoked
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from fts_api.models.user import User, UserRole

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenError(Exception):
    """Base class for token verification failures."""

    def __init__(self, message: str = "Invalid token"):
        self.message = message
        super().__init__(message)


class InvalidTokenError(TokenError):
    """Bad signature, wrong type, wrong issuer/audience or malformed payload."""


class ExpiredTokenError(TokenError):
    """Signature is valid but the token is past its expiry."""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class AccessClaims(BaseModel):
    """Verified identity carried by an access token."""
    id: int
    email: str
    display_name: str
    role: UserRole
    issued_at: datetime
    expires_at: datetime
    jti: Optional[str] = None


class RefreshClaims(BaseModel):
    """Verified content of a refresh token."""
    id: int
    token_version: int
    issued_at: datetime
    expires_at: datetime
    jti: Optional[str] = None


class TokenService:
    """
    Issues and verifies the two token classes.

    Examples
    --------
    >>> tokens = TokenService("access-secret", "refresh-secret")
    >>> token = tokens.issue_access_token(user)
    >>> tokens.verify_access_token(token).email
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_expire_minutes: int = 15,
        refresh_expire_days: int = 7,
        issuer: str = "fts-api",
        audience: str = "fts-client",
        clock: Clock = utc_now,
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("JWT access and refresh secrets must both be set")
        if access_secret == refresh_secret:
            raise ValueError("JWT access and refresh secrets must differ")

        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self._access_expire = timedelta(minutes=access_expire_minutes)
        self._refresh_expire = timedelta(days=refresh_expire_days)
        self._issuer = issuer
        self._audience = audience
        self._clock = clock

    def now(self) -> datetime:
        """Current time on the clock tokens are issued and checked against."""
        return self._clock()

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self._access_expire.total_seconds())

    def issue_access_token(self, user: User) -> str:
        """Create a short-lived access token with identity and role claims."""
        claims = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
        }
        return self._encode(claims, ACCESS_TOKEN_TYPE, self._access_expire, self._access_secret)

    def issue_refresh_token(self, user: User) -> str:
        """Create a long-lived refresh token. It carries no profile claims."""
        claims = {
            "sub": str(user.id),
            "ver": user.token_version,
        }
        return self._encode(claims, REFRESH_TOKEN_TYPE, self._refresh_expire, self._refresh_secret)

    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Verify signature, issuer, audience, type and expiry of an access token.

        Raises:
            ExpiredTokenError: token is past its expiry
            InvalidTokenError: anything else is wrong with it
        """
        payload = self._decode(token, ACCESS_TOKEN_TYPE, self._access_secret)
        try:
            return AccessClaims(
                id=int(payload["sub"]),
                email=payload["email"],
                display_name=payload["name"],
                role=UserRole(payload["role"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                jti=payload.get("jti"),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise InvalidTokenError(f"Malformed access token payload: {e}") from e

    def verify_refresh_token(self, token: str) -> RefreshClaims:
        """
        Verify a refresh token against the refresh secret.

        A token minted by issue_access_token never passes here: the
        signature and the type claim both differ.
        """
        payload = self._decode(token, REFRESH_TOKEN_TYPE, self._refresh_secret)
        try:
            return RefreshClaims(
                id=int(payload["sub"]),
                token_version=int(payload.get("ver", 0)),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                jti=payload.get("jti"),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise InvalidTokenError(f"Malformed refresh token payload: {e}") from e

    def _encode(
        self,
        claims: dict[str, Any],
        token_type: str,
        lifetime: timedelta,
        secret: str,
    ) -> str:
        now = self._clock()
        payload = {
            **claims,
            "type": token_type,
            "iat": now,
            "exp": now + lifetime,
            "iss": self._issuer,
            "aud": self._audience,
            "jti": secrets.token_urlsafe(16),  # Unique token ID
        }
        return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)

    def _decode(self, token: str, expected_type: str, secret: str) -> dict[str, Any]:
        try:
            # Expiry is checked below against the injectable clock
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={"verify_exp": False},
            )
        except JWTError as e:
            raise InvalidTokenError(f"Invalid {expected_type} token: {e}") from e

        if payload.get("type") != expected_type:
            raise InvalidTokenError(
                f"Invalid token type. Expected {expected_type}, got {payload.get('type')}"
            )

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            raise InvalidTokenError(f"Invalid {expected_type} token: missing expiry")
        if self._clock() >= datetime.fromtimestamp(exp, tz=timezone.utc):
            raise ExpiredTokenError(f"{expected_type.capitalize()} token has expired")

        return payload
