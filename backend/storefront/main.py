"""Storefront Backend - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api import api_router
from storefront.api.health import router as health_router
from storefront.core import async_session_maker, settings, setup_logging
from storefront.core.logging import get_logger

# Import all models to ensure they're registered with Base for Alembic
from storefront.models import RevokedToken, User  # noqa: F401
from storefront.services.revocation import RevocationStore

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def purge_expired_revocations() -> int:
    """Delete revocation entries whose tokens have expired. Returns count removed."""
    async with async_session_maker() as db:
        removed = await RevocationStore(db).purge_expired()
        await db.commit()
    return removed


async def _revocation_cleanup_loop() -> None:
    """Periodically remove expired entries from the revocation store."""
    while True:
        await asyncio.sleep(settings.revocation_cleanup_interval_seconds)
        try:
            removed = await purge_expired_revocations()
            if removed > 0:
                logger.info(f"Cleaned up {removed} expired revocation entries")
        except Exception:
            logger.exception("Error cleaning up revocation entries")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    cleanup_task = asyncio.create_task(_revocation_cleanup_loop(), name="revocation-cleanup")
    cleanup_task.add_done_callback(task_done_callback)

    yield

    logger.info("Shutting down...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Storefront accounts and session API",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-Request-ID",
        ],
    )

    # Prometheus metrics (before routers so /metrics endpoint is registered first)
    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
        }

    return app


# Application instance
app = create_app()
