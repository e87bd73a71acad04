"""
Activity log model: the append-only audit trail.

Every instrumented mutation by an authenticated actor is recorded for:
- Security monitoring
- Accountability (who did what to which resource, when)
- Dashboard statistics
"""

import json
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fts_api.core.database import Base

if TYPE_CHECKING:
    from fts_api.models.user import User


class ActivityAction(str, PyEnum):
    """Verbs recorded in the activity log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PUBLISH = "PUBLISH"
    UNPUBLISH = "UNPUBLISH"
    UPLOAD = "UPLOAD"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    ROLE_CHANGE = "ROLE_CHANGE"
    EXPORT = "EXPORT"


class ActivityLog(Base):
    """
    Immutable activity log entry.

    - Records are append-only (no updates or single deletes)
    - user_email is preserved even if the actor is deleted
    - IP address and user agent captured for forensics
    - Timestamps are UTC
    """

    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(primary_key=True)

    # When
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    # Who
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    user_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # What
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    # Details (JSON stored as text)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Context for forensics
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 max length
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    user: Mapped[Optional["User"]] = relationship("User", back_populates="activity_logs")

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action} {self.resource_type} by {self.user_email} at {self.created_at}>"

    @property
    def details_dict(self) -> dict[str, Any]:
        """Parse details from JSON."""
        if not self.details:
            return {}
        try:
            return json.loads(self.details)
        except json.JSONDecodeError:
            return {}

    @classmethod
    def create(
        cls,
        action: str,
        resource_type: str,
        user_id: Optional[int] = None,
        user_email: Optional[str] = None,
        resource_id: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> "ActivityLog":
        """Factory method to create activity log entries."""
        return cls(
            action=action.value if isinstance(action, ActivityAction) else str(action),
            resource_type=resource_type,
            user_id=user_id,
            user_email=user_email,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=json.dumps(details, default=str) if details else None,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
        )
