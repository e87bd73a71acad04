"""
Admin dashboard schemas.
"""

from typing import List

from fts_api.schemas.activity import ActionCount, ActivityLogEntry
from fts_api.schemas.common import CamelModel
from fts_api.schemas.user import RoleCount


class AdminStatsResponse(CamelModel):
    total_users: int
    users_by_role: List[RoleCount]
    total_activity: int
    activity_by_action: List[ActionCount]
    recent_activity: List[ActivityLogEntry]
