"""
FastAPI Application

Entry point for the SKU sync trigger and the velocity read API.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from skupulse import __version__
from skupulse.alerts.notifier import SlackNotifier
from skupulse.config import Settings, get_settings
from skupulse.config.logging import configure_logging
from skupulse.database.connection import open_database
from skupulse.ingestion.shopify import ShopifyClient
from skupulse.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from skupulse.serving.api.routes import etl_router, health_router, skus_router
from skupulse.serving.cache import CacheManager, init_redis

logger = structlog.get_logger(__name__)


def _shopify_client(settings: Settings) -> ShopifyClient:
    return ShopifyClient(settings.shopify)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    configure_logging(settings.monitoring, settings.app_env)

    logger.info("Starting SKU pulse API", env=settings.app_env)

    if settings.database.url:
        try:
            app.state.db = await open_database(settings.database)
        except Exception as e:
            logger.warning("Database init failed", error=str(e))
    else:
        logger.warning("DATABASE_URL not set, database disabled")

    try:
        redis = await init_redis(settings.redis)
    except Exception as e:
        logger.warning("Redis init failed", error=str(e))
        redis = None
    app.state.redis = redis
    app.state.skus_cache = CacheManager(redis, "skus", settings.redis.skus_ttl_seconds)

    yield

    logger.info("Shutting down...")
    if app.state.db is not None:
        await app.state.db.dispose()
    if app.state.redis is not None:
        await app.state.redis.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    State set here is replaced by the lifespan handler at startup; tests
    may swap `db`, `client_factory` and `notifier` directly.
    """
    settings = settings or get_settings()

    # Interactive docs stay off in production
    docs = not settings.is_production
    app = FastAPI(
        title="SKU Pulse API",
        description="Inventory and sales-velocity sync for a Shopify store",
        version=__version__,
        debug=settings.debug,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = None
    app.state.redis = None
    app.state.skus_cache = CacheManager(None, "skus")
    app.state.client_factory = _shopify_client
    app.state.notifier = SlackNotifier.from_settings(settings.alerts)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(etl_router, prefix="/api", tags=["Sync"])
    app.include_router(skus_router, prefix="/api/v1/skus", tags=["SKUs"])

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "environment": settings.app_env,
            "documentation": "/docs" if docs else None,
        }

    return app


app = create_app()
