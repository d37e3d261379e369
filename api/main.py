"""FastAPI application for the Docsmith API.

This module creates and configures the main FastAPI application,
including routers, middleware, and lifecycle events.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from core.logging import configure_logging

from .config import get_settings
from .dependencies import init_dependencies, shutdown_dependencies
from .middleware import RequestLoggingMiddleware, TimingMiddleware
from .routers import events_router, health_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Configures logging, connects to Neo4j and starts the ingestion
    supervisor on startup; cancels unfinished runs and disconnects on
    shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup is complete.
    """
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    logger.info(
        "Starting Docsmith API",
        version=settings.app_version,
        debug=settings.debug,
        workspace_base_dir=str(settings.workspace_base_dir),
    )

    try:
        await init_dependencies(settings)
        logger.info("Dependencies initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize dependencies", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down Docsmith API")
    await shutdown_dependencies()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Docsmith API",
        description=(
            "Documentation ingestion service. Receives source-control push "
            "notifications, extracts documented code units from the pushed "
            "repository and stores them per project."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Add custom middleware
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(TimingMiddleware)

    # Health routes are at root level (/health)
    app.include_router(health_router)

    # Event routes are prefixed with /api/v1
    app.include_router(events_router, prefix=settings.api_prefix)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Root endpoint returning API information."""
        return JSONResponse(
            content={
                "name": settings.app_name,
                "version": settings.app_version,
                "docs": "/docs",
                "health": "/health",
            }
        )

    return app


# Create the application instance
app = create_app()
