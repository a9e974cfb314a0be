"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routes and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryDocumentStore
from src.adapters.repository.postgres import ChangeListener, PostgresDocumentStore, run_migrations
from src.api.dependencies import build_session_factory
from src.api.sessions import SessionRegistry
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.exceptions import ConfigError, StoreError

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Membership Dashboard API v1 - Sessions, registration, dashboard content and approvals",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Validates backend configuration (a ConfigError halts initialization
      and leaves the application loading until restarted)
    - Creates the document store; for Postgres also the connection pool,
      migrations and the change listener thread
    - Closes every dashboard session and the store on shutdown
    """
    settings = get_settings()
    app.state.registry = None

    logger.info("Starting application...")
    try:
        settings.require_backend()
    except ConfigError as e:
        logger.error("Initialization halted: %s", e)
        yield
        return

    pool: ConnectionPool | None = None
    listener: ChangeListener | None = None

    if settings.store_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)

        store = PostgresDocumentStore(pool)
        listener = ChangeListener(store, settings.database_url)
        listener.start()
    else:
        logger.info("Using in-memory document store")
        store = InMemoryDocumentStore()

    # Store shared resources in app state for dependency injection
    app.state.store = store
    app.state.registry = SessionRegistry(
        build_session_factory(settings, store),
        idle_timeout_seconds=settings.session_idle_timeout_seconds,
    )

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    app.state.registry.close_all()
    if listener is not None:
        listener.stop(timeout=5.0)
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="membership-dashboard",
    description="Membership Dashboard API - Registration lifecycle, admin approval and live member content",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """
    Health check endpoint with document store validation.

    Returns 200 OK if the application and its store are healthy,
    503 while loading or when the store is unreachable.
    """
    if getattr(request.app.state, "registry", None) is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "loading"}
        )

    try:
        request.app.state.store.ping()
    except StoreError:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "unhealthy"}
        )

    return JSONResponse(content={"status": "healthy"})
