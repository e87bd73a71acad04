"""SQLAlchemy activity log store. Append and read only."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from fts_api.models.activity import ActivityLog


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


@dataclass
class ActivityLogFilters:
    """Filter and pagination parameters for activity log reads."""

    user_id: Optional[int] = None
    action: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = 1
    limit: int = 50

    def __post_init__(self):
        # Stored timestamps are UTC wall-clock values
        self.start_date = _as_utc(self.start_date)
        self.end_date = _as_utc(self.end_date)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _apply_filters(query: Select, filters: ActivityLogFilters) -> Select:
    if filters.user_id is not None:
        query = query.where(ActivityLog.user_id == filters.user_id)
    if filters.action:
        query = query.where(ActivityLog.action == filters.action)
    if filters.resource_type:
        query = query.where(ActivityLog.resource_type == filters.resource_type)
    if filters.resource_id:
        query = query.where(ActivityLog.resource_id == filters.resource_id)
    if filters.start_date:
        query = query.where(ActivityLog.created_at >= filters.start_date)
    if filters.end_date:
        query = query.where(ActivityLog.created_at <= filters.end_date)
    return query


class ActivityLogRepository:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def add(self, entry: ActivityLog) -> ActivityLog:
        async with self._session_maker() as session:
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
        return entry

    async def find(
        self,
        filters: ActivityLogFilters,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> list[ActivityLog]:
        """Entries matching filters, newest first, with the actor loaded."""
        query = _apply_filters(
            select(ActivityLog).options(selectinload(ActivityLog.user)),
            filters,
        ).order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        async with self._session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def count(self, filters: ActivityLogFilters) -> int:
        query = _apply_filters(select(func.count(ActivityLog.id)), filters)
        async with self._session_maker() as session:
            return (await session.execute(query)).scalar() or 0

    async def count_by_action(self, filters: ActivityLogFilters) -> list[tuple[str, int]]:
        return await self._count_grouped(ActivityLog.action, filters)

    async def count_by_resource_type(self, filters: ActivityLogFilters) -> list[tuple[str, int]]:
        return await self._count_grouped(ActivityLog.resource_type, filters)

    async def _count_grouped(self, column, filters: ActivityLogFilters) -> list[tuple[str, int]]:
        query = _apply_filters(
            select(column, func.count(ActivityLog.id)),
            filters,
        ).group_by(column).order_by(func.count(ActivityLog.id).desc(), column)
        async with self._session_maker() as session:
            result = await session.execute(query)
            return [(key, count) for key, count in result.all()]
