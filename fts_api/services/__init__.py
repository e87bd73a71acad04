from fts_api.services.activity_log import (
    ActivityLogService,
    RecordResult,
    RequestContext,
    record_activity,
)
from fts_api.services.users import UserAdminService

__all__ = [
    "ActivityLogService",
    "RecordResult",
    "RequestContext",
    "UserAdminService",
    "record_activity",
]
