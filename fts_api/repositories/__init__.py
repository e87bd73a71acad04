from fts_api.repositories.activity import ActivityLogFilters, ActivityLogRepository
from fts_api.repositories.users import (
    DuplicateEmailError,
    LastSuperAdminError,
    UserRepository,
    normalize_email,
)

__all__ = [
    "ActivityLogFilters",
    "ActivityLogRepository",
    "DuplicateEmailError",
    "LastSuperAdminError",
    "UserRepository",
    "normalize_email",
]
