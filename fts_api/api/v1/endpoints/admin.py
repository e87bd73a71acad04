"""
Admin dashboard endpoints.
"""

from fastapi import APIRouter, Depends

from fts_api.auth.dependencies import get_container, require_policy
from fts_api.auth.tokens import AccessClaims
from fts_api.core.container import Container
from fts_api.repositories.activity import ActivityLogFilters
from fts_api.schemas.activity import ActionCount, ActivityLogEntry
from fts_api.schemas.admin import AdminStatsResponse
from fts_api.schemas.user import RoleCount

router = APIRouter()


@router.get("/stats", response_model=AdminStatsResponse)
async def dashboard_stats(
    identity: AccessClaims = Depends(require_policy("admin.stats")),
    container: Container = Depends(get_container),
):
    """
    User totals and activity overview for the dashboard.

    Requires: admin or super_admin
    """
    users = await container.user_admin.user_stats()
    activity = await container.activity_log.aggregate_stats(ActivityLogFilters())
    return AdminStatsResponse(
        total_users=users.total_users,
        users_by_role=[RoleCount(role=r, count=c) for r, c in users.users_by_role.items()],
        total_activity=activity.total_count,
        activity_by_action=[ActionCount(action=a, count=c) for a, c in activity.counts_by_action],
        recent_activity=[ActivityLogEntry.from_model(e) for e in activity.recent_entries],
    )
