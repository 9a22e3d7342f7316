"""
FastAPI application entry point for the Funnel Analytics API.

Configures logging, CORS and the API routers, and manages the asyncpg pool
through the application lifespan.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from funnel_analytics import __version__
from funnel_analytics.api import api_router
from funnel_analytics.core.config import get_settings
from funnel_analytics.core.database import close_db, init_db


settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Open the connection pool on startup and close it on shutdown.

    A failed pool initialization is logged; the pool is created lazily on the
    first request instead.
    """
    logger.info(f"Funnel Analytics API starting (timezone={settings.reference_timezone})")
    try:
        await init_db()
        logger.info("Database connection pool initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    yield

    logger.info("Funnel Analytics API shutting down")
    try:
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Funnel Analytics API",
    version=__version__,
    description=(
        "Marketing funnel analytics: sessions, leads, purchases and survey "
        "responses compared against a prior period, plus filtered event listings."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring and load balancer probes."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {
        "name": "Funnel Analytics API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "funnel_analytics.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
