"""
FastAPI Application Factory

Creates and configures the catalog API application.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from redis.exceptions import RedisError

from src.config import Settings, get_settings
from src.config.logging import configure_logging
from src.database.connection import Database
from src.serving.api.errors import register_exception_handlers
from src.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from src.serving.api.routes import health_router, products_router
from src.serving.cache import close_redis, init_redis, products_cache

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: connect the database (unless one was injected) and Redis
    Shutdown: release what startup acquired
    """
    settings: Settings = app.state.settings
    configure_logging(settings=settings)

    logger.info("Starting Product Catalog API", environment=settings.app_env)

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database.from_settings(settings.database)
        try:
            await app.state.database.connect()
            if settings.database.create_tables:
                await app.state.database.create_all()
                logger.info("Database tables ensured")
        except Exception as e:
            logger.warning("Database init failed", error=str(e))

    if settings.redis.enabled:
        try:
            await init_redis(settings.redis)
            products_cache.default_ttl = settings.redis.product_ttl
        except RedisError as e:
            logger.warning("Redis init failed, product cache disabled", error=str(e))

    yield

    logger.info("Shutting down...")
    if settings.redis.enabled:
        await close_redis()
    if owns_database:
        await app.state.database.disconnect()


def create_api_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Configuration, defaults to the cached environment settings
        database: Pre-built database handle; the lifespan leaves it alone

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Product Catalog API",
        description="Product catalog CRUD and monthly product view tracking",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=False,
        allow_methods=settings.security.cors_methods,
        allow_headers=settings.security.cors_headers,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    if settings.security.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            max_requests=settings.security.rate_limit_requests,
            window_seconds=settings.security.rate_limit_window_seconds,
            exempt_paths=("/ping", "/api/v1/health/live", "/api/v1/health/ready"),
        )

    register_exception_handlers(app)

    @app.get("/ping", response_class=PlainTextResponse, include_in_schema=False)
    async def ping() -> str:
        return "pong"

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(products_router, prefix="/api/v1/products", tags=["Products"])

    static_dir = Path(settings.catalog.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir), name="static")

    return app
