"""
Activity log service.

Writes are best-effort: record() never raises, it reports the outcome in a
RecordResult so an audit failure can never abort the business operation
that triggered it. Reads propagate failures as InternalError.

Role restrictions on what a caller may read are applied by the HTTP layer;
this service trusts the filters it is given.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from fts_api.core.errors import InternalError
from fts_api.models.activity import ActivityAction, ActivityLog
from fts_api.repositories.activity import ActivityLogFilters, ActivityLogRepository
from fts_api.schemas.common import PaginationMeta

logger = logging.getLogger(__name__)

RECENT_ENTRIES = 10
EXPORT_LIMIT = 10000


@dataclass(frozen=True)
class RecordResult:
    ok: bool
    entry_id: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    """Where a mutation came from: client address, user agent and request line."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActivityLogPage:
    entries: list[ActivityLog]
    pagination: PaginationMeta


@dataclass
class ActivityStats:
    total_count: int
    counts_by_action: list[tuple[str, int]] = field(default_factory=list)
    counts_by_resource_type: list[tuple[str, int]] = field(default_factory=list)
    recent_entries: list[ActivityLog] = field(default_factory=list)


class ActivityLogService:
    def __init__(self, repository: ActivityLogRepository):
        self._repository = repository

    async def record(
        self,
        user_id: Optional[int],
        action: ActivityAction | str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> RecordResult:
        """Append one entry. Failures are returned, never raised."""
        try:
            entry = ActivityLog.create(
                action=action,
                resource_type=resource_type,
                user_id=user_id,
                user_email=user_email,
                resource_id=resource_id,
                details=details,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            entry = await self._repository.add(entry)
        except Exception as e:
            return RecordResult(ok=False, error=f"{type(e).__name__}: {e}")
        return RecordResult(ok=True, entry_id=entry.id)

    async def query(self, filters: ActivityLogFilters) -> ActivityLogPage:
        """Entries matching filters, newest first, one page at a time."""
        try:
            total = await self._repository.count(filters)
            entries = await self._repository.find(filters, offset=filters.offset, limit=filters.limit)
        except SQLAlchemyError as e:
            logger.error("Failed to read activity logs: %s", e)
            raise InternalError("Failed to retrieve activity logs") from e

        return ActivityLogPage(
            entries=entries,
            pagination=PaginationMeta.create(filters.page, filters.limit, total),
        )

    async def aggregate_stats(self, filters: ActivityLogFilters) -> ActivityStats:
        """Counts by action and resource type plus the most recent entries."""
        try:
            return ActivityStats(
                total_count=await self._repository.count(filters),
                counts_by_action=await self._repository.count_by_action(filters),
                counts_by_resource_type=await self._repository.count_by_resource_type(filters),
                recent_entries=await self._repository.find(filters, limit=RECENT_ENTRIES),
            )
        except SQLAlchemyError as e:
            logger.error("Failed to aggregate activity logs: %s", e)
            raise InternalError("Failed to retrieve activity statistics") from e

    async def export(self, filters: ActivityLogFilters) -> ActivityLogPage:
        """First page of up to EXPORT_LIMIT entries."""
        return await self.query(replace(filters, page=1, limit=EXPORT_LIMIT))


async def record_activity(
    activity_log: ActivityLogService,
    context: Optional[RequestContext],
    user_id: Optional[int],
    user_email: Optional[str],
    action: ActivityAction,
    resource_type: str,
    resource_id: Optional[Any] = None,
    details: Optional[dict[str, Any]] = None,
) -> RecordResult:
    """Record an entry on behalf of an actor and log (not raise) a failure."""
    context = context or RequestContext()
    result = await activity_log.record(
        user_id=user_id,
        user_email=user_email,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details={**context.details, **(details or {})},
        ip_address=context.ip_address,
        user_agent=context.user_agent,
    )
    if not result.ok:
        logger.warning(
            "Activity log write failed (%s %s by user %s): %s",
            action.value, resource_type, user_id, result.error,
        )
    return result
