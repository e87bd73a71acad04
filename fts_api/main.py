"""
FTS Backend API

FastAPI application factory with security hardening.

Run with:
    uvicorn fts_api.main:create_app --factory
"""

import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from fts_api.api.v1.api import api_router
from fts_api.auth.password import generate_temp_password
from fts_api.core.config import Settings, get_settings
from fts_api.core.container import Container, build_container
from fts_api.core.database import close_db, init_db
from fts_api.core.errors import register_exception_handlers
from fts_api.core.logging import configure_logging
from fts_api.models.user import UserRole
from fts_api.repositories.users import DuplicateEmailError
from fts_api.schemas.common import HealthResponse

logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan (startup/shutdown)
# =============================================================================

async def create_default_admin_if_needed(container: Container) -> None:
    """Create the bootstrap super admin if configured and no users exist."""
    settings = container.settings
    if not settings.default_admin_email:
        return
    if await container.users.count() > 0:
        return

    generated = settings.default_admin_password is None
    password = (
        generate_temp_password()
        if generated
        else settings.default_admin_password.get_secret_value()
    )
    try:
        admin = await container.users.create(
            email=settings.default_admin_email,
            name=settings.default_admin_name,
            password_hash=await container.hasher.hash_async(password),
            role=UserRole.SUPER_ADMIN,
        )
    except DuplicateEmailError:
        # Another worker created it first
        return

    logger.info("Default super admin created: id=%s email=%s", admin.id, admin.email)
    if generated:
        print("=" * 60)
        print("DEFAULT SUPER ADMIN ACCOUNT CREATED")
        print(f"   Email:    {admin.email}")
        print(f"   Password: {password}")
        print("   CHANGE THIS PASSWORD IMMEDIATELY!")
        print("=" * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    container: Container = app.state.container
    logger.info("Starting %s %s", container.settings.app_name, container.settings.app_version)

    if container.settings.auto_create_schema:
        await init_db(container.engine)
        logger.info("Database initialized")

    await create_default_admin_if_needed(container)

    yield

    logger.info("Shutting down")
    await close_db(container.engine)


# =============================================================================
# Security Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    def __init__(self, app, enable_hsts: bool = False):
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: Callable):
        response = await call_next(request)

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
            "magnetometer=(), microphone=(), payment=(), usb=()"
        )

        # The API serves JSON only; docs pages need their CDN assets
        if not request.url.path.startswith(("/docs", "/redoc")):
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # HSTS (only enable in production with HTTPS)
        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID for tracing."""

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-ID") or secrets.token_urlsafe(8)
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    container: Optional[Container] = None,
) -> FastAPI:
    """
    Build the application.

    Settings come from the environment unless given; a prebuilt container
    (tests) takes precedence over building one from settings.
    """
    if container is None:
        settings = settings or get_settings()
        container = build_container(settings)
    settings = container.settings

    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Authentication, access control and activity audit log",
        lifespan=lifespan,
        docs_url="/docs" if settings.enable_docs else None,
        redoc_url="/redoc" if settings.enable_docs else None,
        openapi_url="/openapi.json" if settings.enable_docs else None,
    )
    app.state.container = container

    # Order matters: last added runs first
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.add_middleware(RequestIDMiddleware)

    trusted_hosts = settings.get_trusted_hosts()
    if trusted_hosts and "*" not in trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_allow_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )

    register_exception_handlers(app, debug=settings.debug)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check(request: Request):
        """Health check endpoint for load balancers and monitoring."""
        db_status = "connected"
        try:
            async with container.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("Health check database probe failed: %s", e)
            db_status = "unavailable"

        return HealthResponse(
            status="healthy" if db_status == "connected" else "degraded",
            version=settings.app_version,
            database=db_status,
            timestamp=datetime.now(timezone.utc),
            request_id=getattr(request.state, "request_id", None),
        )

    # Include API routers
    app.include_router(api_router, prefix="/api")

    return app


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fts_api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
