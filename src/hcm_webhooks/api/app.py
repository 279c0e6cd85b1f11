"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hcm_webhooks import __version__
from hcm_webhooks.api.middleware import (
    ErrorHandlingMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
)
from hcm_webhooks.api.routers import health_router, v1_router
from hcm_webhooks.config.settings import Settings, get_settings
from hcm_webhooks.core.logging import setup_logging
from hcm_webhooks.db.config import init_db
from hcm_webhooks.webhooks.factory import WebhookServices, create_webhook_services
from hcm_webhooks.webhooks.handlers import EventHandler

logger = structlog.get_logger()


def create_app(
    settings: Settings | None = None,
    *,
    services: WebhookServices | None = None,
    handler: EventHandler | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    This is the application factory that assembles all components:
    - Middleware (in correct order)
    - Routers
    - Lifespan management of the database and processing pipeline

    Args:
        settings: Optional settings override (useful for testing)
        services: Prebuilt services; the caller then owns their lifecycle
        handler: Business logic for the pipeline when services are built here

    Returns:
        Configured FastAPI application

    Example:
        # Production
        uvicorn hcm_webhooks.api.app:create_app --factory

        # Testing
        services = create_webhook_services(Settings(DATABASE_URL="sqlite+aiosqlite:///:memory:"))
        app = create_app(services.settings, services=services)
    """
    if settings is None:
        settings = services.settings if services is not None else get_settings()

    app = FastAPI(
        title="HCM Webhooks API",
        description="Multi-tenant webhook ingestion for HCM systems",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    app.state.settings = settings
    app.state.services = services
    app.state.event_handler = handler

    _configure_middleware(app, settings)
    _configure_routers(app)

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build services, start the pipeline, and tear both down on shutdown.

    When services were injected through ``create_app`` they are used as
    they are and left running.
    """
    if app.state.services is not None:
        yield
        return

    settings: Settings = app.state.settings
    setup_logging(settings)
    logger.info("application_starting", environment=settings.ENVIRONMENT)

    services = create_webhook_services(settings, handler=app.state.event_handler)
    await init_db(services.engine, create_tables=settings.DATABASE_CREATE_TABLES)
    await services.pipeline.start()
    app.state.services = services

    try:
        yield
    finally:
        logger.info("application_stopping")
        await services.aclose()
        app.state.services = None


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure middleware stack.

    Middleware order (outermost to innermost execution):
    1. RequestContextMiddleware - Assigns request id, binds log context
    2. RequestLoggingMiddleware - Logs all requests
    3. ErrorHandlingMiddleware - Converts exceptions to HTTP responses
    4. CORSMiddleware - Handles CORS (if configured)

    Note: Middleware is added in reverse order because Starlette
    processes them from last-added to first-added.
    """
    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)


def _configure_routers(app: FastAPI) -> None:
    """Configure API routers."""
    # Health and metrics at root level
    app.include_router(health_router)

    app.include_router(v1_router)
