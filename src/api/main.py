"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures logging, shared clients and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.api.v1 import router as v1_router
from src.config.logging import configure_logging
from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Account Gateway API v1 - Register, authenticate and manage user accounts, send account email",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Configures logging
    - Creates database connection pool and runs migrations on startup
    - Creates HTTP clients for the identity and email providers
    - Closes pool and clients on shutdown
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("Starting application...")
    logger.info("Connecting to database...")

    # Create connection pool with explicit sizing
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.pool_timeout_seconds,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    # Every identity/email call is bounded by these client timeouts
    idp_client = httpx.Client(
        base_url=settings.idp_base_url,
        timeout=settings.idp_timeout_seconds,
    )
    email_client = httpx.Client(
        base_url=settings.sendgrid_base_url,
        timeout=settings.email_timeout_seconds,
    )

    # Store shared resources in app state for dependency injection
    app.state.pool = pool
    app.state.idp_client = idp_client
    app.state.email_client = email_client

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    idp_client.close()
    email_client.close()
    pool.close()
    logger.info("Database connection pool and HTTP clients closed")


app = FastAPI(
    title="account-gateway",
    description="Account Gateway API - Identity-first registration in front of an identity provider",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    # Validate database connectivity
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    return {"status": "healthy"}
