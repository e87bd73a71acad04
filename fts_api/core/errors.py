"""
Error taxonomy and HTTP rendering.

Domain code raises AppError subclasses; the handlers registered here turn
them into a consistent `{"error": <kind>, "message": <text>}` body.
"""

import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base exception for all errors surfaced to API clients."""

    error = "InternalError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An internal error occurred"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    error = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request data"


class ConflictError(AppError):
    error = "Conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class InvalidCredentialsError(AppError):
    """Login failure. Same kind and message for unknown email and wrong password."""

    error = "InvalidCredentials"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password"


class UnauthorizedError(AppError):
    error = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(AppError):
    error = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    error = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class InternalError(AppError):
    pass


_STATUS_TO_KIND = {
    400: ValidationError.error,
    401: UnauthorizedError.error,
    403: ForbiddenError.error,
    404: NotFoundError.error,
    409: ConflictError.error,
}


def error_body(kind: str, message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": kind, "message": message}
    if details is not None:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Install handlers producing the error envelope for every failure path."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        request_id = getattr(request.state, "request_id", "unknown")
        if exc.status_code >= 500:
            logger.error("[%s] %s %s failed: %s", request_id, request.method, request.url.path, exc.message)
        else:
            logger.info(
                "[%s] %s %s -> %s %s",
                request_id, request.method, request.url.path, exc.status_code, exc.error,
            )
        headers = None
        if isinstance(exc, UnauthorizedError):
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.error, exc.message, exc.details),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg", "invalid value"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(ValidationError.error, "Request validation failed", details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        kind = _STATUS_TO_KIND.get(exc.status_code, InternalError.error)
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(kind, message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        """Global exception handler to prevent information leakage."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception("[%s] Unhandled exception on %s %s", request_id, request.method, request.url.path)

        body = error_body(InternalError.error, InternalError.default_message)
        body["request_id"] = request_id
        if debug:
            body["exception"] = type(exc).__name__
            body["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
