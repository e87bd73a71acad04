"""
Activity log schemas.
"""

from datetime import datetime
from typing import Any, List, Optional

from fts_api.models.activity import ActivityLog
from fts_api.models.user import UserRole
from fts_api.schemas.common import CamelModel, PaginationMeta


class ActivityActor(CamelModel):
    id: int
    name: str
    email: str
    role: UserRole


class ActivityLogEntry(CamelModel):
    id: int
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    user: Optional[ActivityActor] = None

    @classmethod
    def from_model(cls, entry: ActivityLog) -> "ActivityLogEntry":
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            user_email=entry.user_email,
            action=entry.action,
            resource_type=entry.resource_type,
            resource_id=entry.resource_id,
            details=entry.details_dict,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
            created_at=entry.created_at,
            user=ActivityActor.model_validate(entry.user) if entry.user else None,
        )


class ActivityLogListResponse(CamelModel):
    entries: List[ActivityLogEntry]
    pagination: PaginationMeta


class ActionCount(CamelModel):
    action: str
    count: int


class ResourceTypeCount(CamelModel):
    resource_type: str
    count: int


class ActivityStatsResponse(CamelModel):
    total_count: int
    counts_by_action: List[ActionCount]
    counts_by_resource_type: List[ResourceTypeCount]
    recent_entries: List[ActivityLogEntry]
