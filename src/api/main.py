"""
Application entry point.

Builds the FastAPI app, mounts the v1 router and wires storage and mail
adapters into app state during the lifespan.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.api.dependencies import build_services
from src.api.v1 import router as v1_router
from src.config.settings import get_settings

logger = logging.getLogger(__name__)

tags_metadata = [
    {
        "name": "v1",
        "description": "Verification levels, contact confirmation and session tokens",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Open storage and build the domain services; close storage on exit.

    With the postgres backend a connection pool is opened and the schema
    migrations are applied before the first request is served.
    """
    settings = get_settings()
    logger.info(
        "Starting with %s storage and %s mail", settings.storage_backend, settings.mail_backend
    )

    pool = None
    if settings.storage_backend == "postgres":
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        run_migrations(pool)
    else:
        logger.warning("Using in-memory storage; data is lost on shutdown")

    app.state.pool = pool
    app.state.services = build_services(settings, pool=pool)
    logger.info("Ready")

    yield

    if pool is not None:
        pool.close()
        logger.info("Connection pool closed")


app = FastAPI(
    title="identity-verification",
    description="Identity Verification API - Address bindings, level 1-4 verification requests "
    "and one-time contact confirmation",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """Liveness probe. Fails when the database does not answer."""
    pool = getattr(request.app.state, "pool", None)
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")
    return {"status": "healthy"}
