"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.notify import build_console_notifier
from src.adapters.repository import build_repositories, run_migrations
from src.api.errors import install_error_handlers
from src.api.v1 import router as v1_router
from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Registration workflow API v1 - Verify identity, save wizard steps, record payments",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Configures logging from settings
    - Creates the database pool and runs migrations (postgres backend)
    - Starts the notifier worker pool
    - Closes both on shutdown
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    logger.info("Starting application (%s, %s store)...", settings.environment, settings.store_backend)

    pool = None
    if settings.store_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)

    # Stored in app state for dependency injection
    app.state.pool = pool
    app.state.repositories = build_repositories(pool)
    app.state.notifier = build_console_notifier(
        max_workers=settings.notification_workers,
        timeout_seconds=settings.notification_timeout_seconds,
    )

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    app.state.notifier.close()
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    application = FastAPI(
        title="summit-registration",
        description="Event registration workflow - verification gate, step-wise wizard "
        "and payment reconciliation",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    install_error_handlers(application)
    application.include_router(v1_router, prefix="/v1")

    @application.get("/health")
    def health_check(request: Request) -> dict[str, str]:
        """
        Health check endpoint with database validation.

        Returns 200 OK if application and database are healthy.
        Raises exception if database connection fails.
        """
        pool = request.app.state.pool
        if pool is not None:
            with pool.connection() as conn:
                conn.execute("SELECT 1")

        return {"status": "healthy"}

    return application


app = create_app()
