"""
Activity logging helpers for request handlers.

Centralizes activity entry creation so endpoints only name the action and
the resource; the actor, client address, user agent and request line are
taken from the request.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request

from fts_api.auth.tokens import AccessClaims
from fts_api.models.activity import ActivityAction
from fts_api.services.activity_log import (
    ActivityLogService,
    RecordResult,
    RequestContext,
    record_activity,
)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.
    Handles X-Forwarded-For header for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take the first IP (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


def get_user_agent(request: Request) -> str:
    """Extract user agent from request headers."""
    return request.headers.get("User-Agent", "unknown")[:500]


def request_context(request: Request) -> RequestContext:
    """Capture client address, user agent and the request line."""
    return RequestContext(
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        details={
            "method": request.method,
            "url": request.url.path,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


async def record_request_activity(
    activity_log: ActivityLogService,
    request: Request,
    identity: AccessClaims,
    action: ActivityAction,
    resource_type: str,
    resource_id: Optional[Any] = None,
    details: Optional[dict[str, Any]] = None,
) -> RecordResult:
    """
    Record one activity entry for the authenticated caller of this request.

    Example:
        await record_request_activity(
            activity_log, request, identity,
            ActivityAction.EXPORT, "activity",
            details={"count": len(entries)},
        )
    """
    return await record_activity(
        activity_log,
        request_context(request),
        user_id=identity.id,
        user_email=identity.email,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
    )
