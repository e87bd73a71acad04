"""
API Router configuration.

Aggregates all API endpoints with proper tagging and prefixes.
"""

from fastapi import APIRouter

from fts_api.api.v1.endpoints import activity, admin, auth, users

api_router = APIRouter()

# Authentication (no auth required for register/login/refresh)
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["authentication"]
)

# Activity log (own entries for everyone, all entries for super admins)
api_router.include_router(
    activity.router,
    prefix="/activity",
    tags=["activity"]
)

# User management (requires super admin)
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["users"]
)

# Dashboard (requires admin or super admin)
api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"]
)
