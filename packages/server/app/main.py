"""
Org License Manager API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import router as api_router
from app.core.config import Settings, get_settings
from app.core.database import engine, get_session, init_db, ping
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import SecurityHeadersMiddleware
from app.services.license_settings import LicenseSettingsService
from app.services.notifications import build_notifier
from app.tasks.license_renewal import LicenseRenewalSweeper

log = structlog.get_logger()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Org License Manager",
        description="Organizations, memberships, invitations and license lifecycle.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.license_settings = LicenseSettingsService(
        default_minutes=settings.default_license_expiration_minutes
    )
    app.state.notifier = build_notifier(settings)
    app.state.sweeper = LicenseRenewalSweeper(
        app.state.license_settings,
        interval_seconds=settings.license_renewal_interval_seconds,
    )

    # Middleware (outermost first)
    app.add_middleware(SecurityHeadersMiddleware, hsts=not settings.debug)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(session: AsyncSession = Depends(get_session)):
        """Readiness check endpoint: the database must answer."""
        await ping(session)
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Org License Manager starting", renewal=settings.license_renewal_enabled)
        if settings.create_tables_on_startup:
            await init_db()
        await app.state.license_settings.initialize()
        if settings.license_renewal_enabled:
            app.state.sweeper.start()

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Org License Manager shutting down")
        await app.state.sweeper.stop()
        await app.state.notifier.aclose()
        await app.state.license_settings.drain()
        await engine.dispose()

    return app


app = create_app()
