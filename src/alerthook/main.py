"""
Main FastAPI application entry point.

This module sets up the FastAPI app with all middleware, routes, and lifecycle events.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import alerts_router, health_router, metrics_router
from .config import Settings, get_settings
from .core.counters import GlobalStats, RateWindowStore
from .core.exceptions import AlertHookException
from .core.guards import IPAllowListGuard, PayloadGuard, RateLimitGuard, TokenAuthGuard
from .core.metrics import MetricsCollector
from .core.middleware import CORSGuardMiddleware, RequestContextMiddleware
from .core.pipeline import GuardChain
from .core.sound import SoundDispatcher
from .core.window_service import WindowResetService


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    # uvicorn has its own access log; ours carries the request id
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_guard_chain(
    settings: Settings,
    store: RateWindowStore,
    stats: GlobalStats,
    metrics: Optional[MetricsCollector] = None,
) -> GuardChain:
    """Ingestion guards in their fixed order."""
    security = settings.security
    return GuardChain.of(
        [
            IPAllowListGuard(security.allow_list),
            RateLimitGuard(
                store=store,
                stats=stats,
                limit=security.rate_limit,
                warn_ratio=security.rate_limit_warn_ratio,
            ),
            TokenAuthGuard(security.auth_token),
            PayloadGuard(settings.validation.max_body_bytes),
        ],
        metrics=metrics,
    )


def create_lifespan_handler(settings: Settings) -> Any:
    """Create a lifespan handler with access to settings."""
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        FastAPI lifespan context manager.

        Starts the rate-limit window reset loop and stops background
        work on shutdown, after uvicorn has drained in-flight requests.
        """
        logger = structlog.get_logger(__name__)
        logger.info(
            "Starting AlertHook service",
            version=app.version,
            port=settings.port,
            rate_limit=settings.security.rate_limit,
            allow_list=list(settings.security.allow_list),
            auth_enabled=bool(settings.security.auth_token),
            sound_enabled=settings.sound.enabled,
        )

        window_service = WindowResetService(
            app.state.store,
            interval_seconds=settings.security.rate_limit_window_seconds,
        )
        app.state.window_service = window_service
        await window_service.start()

        try:
            logger.info("AlertHook service started successfully")
            yield
        finally:
            logger.info("Shutting down AlertHook service")

            await window_service.stop()

            dispatcher = getattr(app.state, 'dispatcher', None)
            if dispatcher is not None:
                await dispatcher.aclose()

            logger.info("AlertHook service shutdown complete")

    return lifespan


async def alerthook_exception_handler(request: Request, exc: AlertHookException) -> JSONResponse:
    """Render guard rejections as short JSON error bodies."""
    headers = {}

    # Add Retry-After header for rate limit errors
    if exc.status_code == 429 and "retry_after" in exc.details:
        headers["Retry-After"] = str(exc.details["retry_after"])

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": str(exc),
            "details": exc.details,
        },
        headers=headers,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Shared state (counters, statistics, guard chain, sound dispatcher)
    is created here and owned by the app instance.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings.log_level)

    app = FastAPI(
        title="AlertHook",
        description="Alert webhook receiver",
        version="0.1.0",
        lifespan=create_lifespan_handler(settings),
    )

    metrics = MetricsCollector()
    store = RateWindowStore(window_seconds=settings.security.rate_limit_window_seconds)
    stats = GlobalStats()

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.store = store
    app.state.stats = stats
    app.state.guard_chain = build_guard_chain(settings, store, stats, metrics)
    app.state.dispatcher = SoundDispatcher(settings.sound, metrics)

    # Last added runs first: request context wraps the CORS guard
    app.add_middleware(CORSGuardMiddleware)
    app.add_middleware(RequestContextMiddleware, metrics=metrics)

    app.add_exception_handler(AlertHookException, alerthook_exception_handler)  # type: ignore[arg-type]

    app.include_router(alerts_router, tags=["alerts"])
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])

    return app


# Create the app instance
app = create_app()


def run() -> None:
    """Console entry point."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "alerthook.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
