"""
Activity log endpoints.

Any authenticated user can read their own activity. Reading other users'
activity and exporting require the activity.read_all / activity.export
policies.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from fts_api.auth.audit import record_request_activity
from fts_api.auth.dependencies import (
    ACCESS_POLICIES,
    get_container,
    get_current_identity,
    require_policy,
)
from fts_api.auth.tokens import AccessClaims
from fts_api.core.container import Container
from fts_api.models.activity import ActivityAction
from fts_api.repositories.activity import ActivityLogFilters
from fts_api.schemas.activity import (
    ActionCount,
    ActivityLogEntry,
    ActivityLogListResponse,
    ActivityStatsResponse,
    ResourceTypeCount,
)
from fts_api.services.activity_log import ActivityLogPage, ActivityStats

router = APIRouter()


def activity_filters(
    action: Optional[ActivityAction] = None,
    resource_type: Optional[str] = Query(None, alias="resourceType", max_length=50),
    resource_id: Optional[str] = Query(None, alias="resourceId", max_length=100),
    filter_user_id: Optional[int] = Query(None, alias="userId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
) -> ActivityLogFilters:
    """Query string filters shared by the list and stats endpoints."""
    return ActivityLogFilters(
        user_id=filter_user_id,
        action=action.value if action else None,
        resource_type=resource_type,
        resource_id=resource_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


def _scope_to_caller(filters: ActivityLogFilters, identity: AccessClaims) -> ActivityLogFilters:
    # Only privileged readers may look at other users' activity
    if identity.role not in ACCESS_POLICIES["activity.read_all"]:
        filters.user_id = identity.id
    return filters


def _list_response(page: ActivityLogPage) -> ActivityLogListResponse:
    return ActivityLogListResponse(
        entries=[ActivityLogEntry.from_model(e) for e in page.entries],
        pagination=page.pagination,
    )


def _stats_response(stats: ActivityStats) -> ActivityStatsResponse:
    return ActivityStatsResponse(
        total_count=stats.total_count,
        counts_by_action=[ActionCount(action=a, count=c) for a, c in stats.counts_by_action],
        counts_by_resource_type=[
            ResourceTypeCount(resource_type=r, count=c) for r, c in stats.counts_by_resource_type
        ],
        recent_entries=[ActivityLogEntry.from_model(e) for e in stats.recent_entries],
    )


@router.get("/logs", response_model=ActivityLogListResponse)
async def list_activity_logs(
    filters: ActivityLogFilters = Depends(activity_filters),
    identity: AccessClaims = Depends(get_current_identity),
    container: Container = Depends(get_container),
):
    """
    List activity entries, newest first.

    Users other than super admins only ever see their own entries; a userId
    filter they pass is replaced by their own id.
    """
    page = await container.activity_log.query(_scope_to_caller(filters, identity))
    return _list_response(page)


@router.get("/stats", response_model=ActivityStatsResponse)
async def activity_stats(
    filters: ActivityLogFilters = Depends(activity_filters),
    identity: AccessClaims = Depends(get_current_identity),
    container: Container = Depends(get_container),
):
    """Counts by action and resource type, plus the latest entries."""
    stats = await container.activity_log.aggregate_stats(_scope_to_caller(filters, identity))
    return _stats_response(stats)


@router.get("/users/{user_id}/logs", response_model=ActivityLogListResponse)
async def user_activity_logs(
    user_id: int,
    filters: ActivityLogFilters = Depends(activity_filters),
    identity: AccessClaims = Depends(require_policy("activity.read_all")),
    container: Container = Depends(get_container),
):
    """
    Activity of one user.

    Requires: super_admin
    """
    filters.user_id = user_id
    return _list_response(await container.activity_log.query(filters))


@router.get("/users/{user_id}/stats", response_model=ActivityStatsResponse)
async def user_activity_stats(
    user_id: int,
    filters: ActivityLogFilters = Depends(activity_filters),
    identity: AccessClaims = Depends(require_policy("activity.read_all")),
    container: Container = Depends(get_container),
):
    """
    Activity statistics of one user.

    Requires: super_admin
    """
    filters.user_id = user_id
    return _stats_response(await container.activity_log.aggregate_stats(filters))


@router.get("/export")
async def export_activity_logs(
    request: Request,
    filters: ActivityLogFilters = Depends(activity_filters),
    identity: AccessClaims = Depends(require_policy("activity.export")),
    container: Container = Depends(get_container),
):
    """
    Download matching entries as a JSON attachment.

    Requires: super_admin
    """
    page = await container.activity_log.export(filters)
    now = datetime.now(timezone.utc)
    entries = [
        ActivityLogEntry.from_model(e).model_dump(mode="json", by_alias=True)
        for e in page.entries
    ]

    await record_request_activity(
        container.activity_log,
        request,
        identity,
        ActivityAction.EXPORT,
        "activity",
        details={"message": "Activity logs exported", "count": len(entries)},
    )

    return JSONResponse(
        content={
            "exportedAt": now.isoformat(),
            "total": page.pagination.total,
            "count": len(entries),
            "entries": entries,
        },
        headers={
            "Content-Disposition": f'attachment; filename="activity-logs-{now:%Y-%m-%d}.json"'
        },
    )
