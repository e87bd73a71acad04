"""
User (identity) model and roles.

Security considerations:
- Passwords are stored only as argon2id hashes
- Email is unique and stored lower-cased
- token_version revokes outstanding refresh tokens when bumped; it starts
  at a random value and ids are never reused
- All timestamps use UTC
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fts_api.core.database import Base

if TYPE_CHECKING:
    from fts_api.models.activity import ActivityLog


class UserRole(str, PyEnum):
    """
    User roles, from least to most privileged.

    The order is descriptive only: route checks compare against an explicit
    set of roles and never infer that super_admin includes admin.
    """
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Identity record with credentials and a role."""

    __tablename__ = "users"
    # Ids of deleted users are never handed out again
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(primary_key=True)

    # Authentication
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Profile
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda e: [r.value for r in e], native_enum=False, length=20),
        nullable=False,
        default=UserRole.USER,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Audit trail
    activity_logs: Mapped[List["ActivityLog"]] = relationship(
        "ActivityLog",
        back_populates="user",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"
