"""
FTS Database Models

This module exports all SQLAlchemy models for the application.
"""

from fts_api.models.user import User, UserRole
from fts_api.models.activity import ActivityLog, ActivityAction

__all__ = [
    # User models
    "User",
    "UserRole",
    # Activity models
    "ActivityLog",
    "ActivityAction",
]
