"""Redeployer HTTP API - FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import time
import uuid

from fastapi import FastAPI, Request
import structlog

from redeployer.config import get_settings
from redeployer.context import AppContext
from redeployer.logging_config import setup_logging
from redeployer.store import SqlServiceStore

from .routers import health, live, services


def create_app(context: AppContext | None = None) -> FastAPI:
    """Create the application.

    When `context` is given it is used as-is and its lifecycle is left to the
    caller; otherwise one is built from settings at startup and torn down at
    shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if context is not None:
            yield
            return

        settings = get_settings()
        setup_logging(settings)
        owned = AppContext.build(settings)
        if isinstance(owned.store, SqlServiceStore):
            await owned.store.init_schema()
        app.state.context = owned
        structlog.get_logger().info(
            "redeployer_ready",
            bus_capacity=settings.event_bus_capacity,
            deploy_lock_enabled=settings.deploy_lock_enabled,
        )

        try:
            yield
        finally:
            await owned.dispatcher.shutdown()
            if isinstance(owned.store, SqlServiceStore):
                await owned.store.dispose()

    app = FastAPI(
        title="Redeployer",
        description="Redeploys compose services from git and streams their status",
        version="0.1.0",
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID", f"req_{uuid.uuid4().hex[:8]}")
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id, method=request.method, path=request.url.path
        )

        start = time.time()
        logger = structlog.get_logger()

        try:
            response = await call_next(request)
            duration_ms = (time.time() - start) * 1000
            if response.status_code >= 500:  # noqa: PLR2004
                logger.error(
                    "http_request_failed",
                    status_code=response.status_code,
                    duration_ms=round(duration_ms, 2),
                )
            else:
                logger.info(
                    "http_request",
                    status_code=response.status_code,
                    duration_ms=round(duration_ms, 2),
                )
            return response
        except Exception as e:
            logger.error(
                "http_request_exception",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id", "method", "path")

    app.include_router(health.router)
    app.include_router(services.router, prefix="/api")
    app.include_router(live.router, prefix="/api")
    return app
