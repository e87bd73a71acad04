from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from fts_api.core.errors import InternalError
from fts_api.models.activity import ActivityAction
from fts_api.repositories.activity import ActivityLogFilters
from fts_api.services.activity_log import (
    EXPORT_LIMIT,
    ActivityLogService,
    RequestContext,
    record_activity,
)


async def seed(container):
    alice = await container.users.create("alice@example.com", "Alice", "x")
    bob = await container.users.create("bob@example.com", "Bob", "x")
    log = container.activity_log

    await log.record(alice.id, ActivityAction.LOGIN, "auth", user_email=alice.email)
    await log.record(alice.id, ActivityAction.CREATE, "content", resource_id=10, user_email=alice.email)
    await log.record(alice.id, ActivityAction.UPDATE, "content", resource_id=10, user_email=alice.email)
    await log.record(bob.id, ActivityAction.LOGIN, "auth", user_email=bob.email)
    await log.record(bob.id, ActivityAction.UPLOAD, "media", resource_id="img-1", user_email=bob.email)
    return alice, bob


async def test_record_returns_result(container):
    user = await container.users.create("alice@example.com", "Alice", "x")

    result = await container.activity_log.record(
        user.id,
        ActivityAction.PUBLISH,
        "content",
        resource_id=5,
        details={"title": "Hello", "when": datetime(2026, 1, 1, tzinfo=timezone.utc)},
        ip_address="127.0.0.1",
        user_agent="x" * 600,
        user_email=user.email,
    )

    assert result.ok
    assert result.entry_id is not None
    assert result.error is None

    page = await container.activity_log.query(ActivityLogFilters())
    entry = page.entries[0]
    assert entry.id == result.entry_id
    assert entry.action == "PUBLISH"
    assert entry.resource_id == "5"
    assert entry.details_dict["title"] == "Hello"
    assert entry.details_dict["when"].startswith("2026-01-01")
    assert len(entry.user_agent) == 500
    assert entry.user.email == "alice@example.com"


async def test_record_never_raises():
    repository = AsyncMock()
    repository.add.side_effect = OperationalError("INSERT", {}, Exception("database is locked"))
    service = ActivityLogService(repository)

    result = await service.record(1, ActivityAction.LOGIN, "auth")

    assert not result.ok
    assert result.entry_id is None
    assert "database is locked" in result.error


async def test_record_activity_merges_context_and_logs_failure(caplog):
    service = AsyncMock()
    service.record.return_value.ok = False
    service.record.return_value.error = "boom"
    context = RequestContext(ip_address="10.1.1.1", user_agent="ua", details={"method": "POST", "url": "/x"})

    await record_activity(
        service, context, 3, "c@example.com", ActivityAction.DELETE, "user",
        resource_id=4, details={"message": "User deleted", "url": "/override"},
    )

    kwargs = service.record.call_args.kwargs
    assert kwargs["details"] == {"method": "POST", "url": "/override", "message": "User deleted"}
    assert kwargs["ip_address"] == "10.1.1.1"
    assert kwargs["user_email"] == "c@example.com"
    assert "Activity log write failed (DELETE user by user 3): boom" in caplog.text


async def test_query_newest_first_with_pagination(container):
    await seed(container)

    page = await container.activity_log.query(ActivityLogFilters(page=1, limit=2))
    assert [e.action for e in page.entries] == ["UPLOAD", "LOGIN"]
    assert page.pagination.total == 5
    assert page.pagination.total_pages == 3
    assert page.pagination.has_next
    assert not page.pagination.has_prev

    last = await container.activity_log.query(ActivityLogFilters(page=3, limit=2))
    assert [e.action for e in last.entries] == ["LOGIN"]
    assert not last.pagination.has_next
    assert last.pagination.has_prev


async def test_query_filters(container):
    alice, bob = await seed(container)
    query = container.activity_log.query

    assert (await query(ActivityLogFilters(user_id=alice.id))).pagination.total == 3
    assert (await query(ActivityLogFilters(action="LOGIN"))).pagination.total == 2
    assert (await query(ActivityLogFilters(resource_type="content"))).pagination.total == 2
    assert (await query(ActivityLogFilters(resource_type="content", resource_id="10", action="UPDATE"))).pagination.total == 1
    assert (await query(ActivityLogFilters(user_id=bob.id, resource_type="content"))).pagination.total == 0

    now = datetime.now(timezone.utc)
    assert (await query(ActivityLogFilters(start_date=now - timedelta(hours=1)))).pagination.total == 5
    assert (await query(ActivityLogFilters(start_date=now + timedelta(hours=1)))).pagination.total == 0
    assert (await query(ActivityLogFilters(end_date=now - timedelta(hours=1)))).pagination.total == 0


async def test_aggregate_stats(container):
    alice, _ = await seed(container)

    stats = await container.activity_log.aggregate_stats(ActivityLogFilters())
    assert stats.total_count == 5
    assert stats.counts_by_action[0] == ("LOGIN", 2)
    assert dict(stats.counts_by_action) == {"LOGIN": 2, "CREATE": 1, "UPDATE": 1, "UPLOAD": 1}
    assert dict(stats.counts_by_resource_type) == {"auth": 2, "content": 2, "media": 1}
    assert len(stats.recent_entries) == 5

    own = await container.activity_log.aggregate_stats(ActivityLogFilters(user_id=alice.id))
    assert own.total_count == 3
    assert dict(own.counts_by_resource_type) == {"auth": 1, "content": 2}


async def test_export_ignores_paging(container):
    await seed(container)

    page = await container.activity_log.export(ActivityLogFilters(page=3, limit=1))
    assert len(page.entries) == 5
    assert page.pagination.limit == EXPORT_LIMIT


async def test_read_failure_is_internal_error(container):
    with patch.object(
        container.activity_log._repository,
        "count",
        AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("no such table"))),
    ):
        with pytest.raises(InternalError):
            await container.activity_log.query(ActivityLogFilters())
        with pytest.raises(InternalError):
            await container.activity_log.aggregate_stats(ActivityLogFilters())


async def test_entries_survive_user_deletion(container):
    alice, _ = await seed(container)

    assert await container.users.delete(alice.id)

    page = await container.activity_log.query(ActivityLogFilters(resource_type="content"))
    assert page.pagination.total == 2
    assert all(e.user_id is None for e in page.entries)
    assert all(e.user_email == "alice@example.com" for e in page.entries)


async def test_date_filters_respect_utc_offset(container):
    await seed(container)
    query = container.activity_log.query

    now = datetime.now(timezone.utc)
    jakarta = timezone(timedelta(hours=7))
    new_york = timezone(timedelta(hours=-5))

    since = ActivityLogFilters(start_date=(now - timedelta(hours=1)).astimezone(jakarta))
    assert (await query(since)).pagination.total == 5

    until = ActivityLogFilters(end_date=(now + timedelta(hours=1)).astimezone(new_york))
    assert (await query(until)).pagination.total == 5

    later = ActivityLogFilters(start_date=(now + timedelta(hours=1)).astimezone(new_york))
    assert (await query(later)).pagination.total == 0
