"""
Spark - FastAPI Application Entry Point

Application with:
- Async lifespan management (DB engine, optional Redis, service container)
- CORS, timeout, and structured-logging middleware
- Health-check endpoints (liveness + deep readiness)
- Active-request tracking for graceful shutdown
- A single exception handler rendering domain errors as JSON
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from spark.config import Settings, get_settings
from spark.database import build_engine, init_models
from spark.exceptions import SparkError
from spark.services.code_delivery import CodeSender
from spark.services.container import build_services
from spark.utils.clock import Clock, utcnow

logger: structlog.stdlib.BoundLogger = structlog.get_logger("spark")

DRAIN_TIMEOUT_SECONDS = 15


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Active request counter for graceful shutdown
# ---------------------------------------------------------------------------

class RequestTracker:
    def __init__(self) -> None:
        self.active = 0
        self._lock = asyncio.Lock()

    async def increment(self) -> None:
        async with self._lock:
            self.active += 1

    async def decrement(self) -> None:
        async with self._lock:
            self.active -= 1

    async def drain(self, timeout: float = DRAIN_TIMEOUT_SECONDS) -> None:
        """Wait until all in-flight requests complete or timeout expires."""
        deadline = time.monotonic() + timeout
        while True:
            async with self._lock:
                if self.active <= 0:
                    break
            if time.monotonic() >= deadline:
                logger.warning("drain_timeout_exceeded", remaining_requests=self.active)
                break
            await asyncio.sleep(0.25)


# ---------------------------------------------------------------------------
# Redis helpers
# ---------------------------------------------------------------------------

async def _connect_redis(settings: Settings):
    import redis.asyncio as aioredis

    client = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=5,
    )
    # Verify connectivity
    await client.ping()
    logger.info("redis_connected", url=settings.REDIS_URL)
    return client


async def _close_redis(client) -> None:
    if client is not None:
        await client.aclose()
        logger.info("redis_closed")


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed a configurable wall-clock timeout."""

    def __init__(self, app, timeout_seconds: float = 30.0) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await asyncio.wait_for(
                call_next(request),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={"detail": "Request timed out"},
            )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration."""

    def __init__(self, app, tracker: RequestTracker) -> None:
        super().__init__(app)
        self.tracker = tracker

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()

        await self.tracker.increment()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            await self.tracker.decrement()

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


async def spark_error_handler(request: Request, exc: SparkError) -> JSONResponse:
    logger.info(
        "request_rejected",
        path=request.url.path,
        error=exc.code,
        status=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code},
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    sender: CodeSender | None = None,
    clock: Clock = utcnow,
) -> FastAPI:
    """Build the FastAPI application.

    ``sender`` and ``clock`` are forwarded to the service container so tests
    and alternative deployments can swap the OTP delivery channel and time.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)
    tracker = RequestTracker()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage startup and shutdown of long-lived resources."""
        # -- Startup ----------------------------------------------------- #
        logger.info(
            "startup_begin",
            environment=settings.ENVIRONMENT,
            log_level=settings.LOG_LEVEL,
        )

        # 1. Database engine; creating tables (dev) or a trivial query warms the pool.
        engine = build_engine(settings)
        if settings.AUTO_CREATE_TABLES:
            await init_models(engine)
        else:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
        logger.info("database_pool_initialised")

        # 2. Redis (distributed locks) when configured
        redis = await _connect_redis(settings) if settings.REDIS_URL else None

        # 3. Services
        app.state.engine = engine
        app.state.redis = redis
        app.state.services = build_services(
            settings, engine, redis=redis, sender=sender, clock=clock
        )
        logger.info("startup_complete", distributed_locks=redis is not None)

        yield

        # -- Shutdown ---------------------------------------------------- #
        logger.info("shutdown_begin")

        # 1. Drain in-flight requests
        await tracker.drain()

        # 2. Close Redis
        await _close_redis(redis)

        # 3. Dispose DB engine (closes the connection pool)
        await engine.dispose()
        logger.info("database_pool_closed")

        logger.info("shutdown_complete")

    app = FastAPI(
        title="Spark",
        description="Swipe matching with one-time-code sign-in and polled chat",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    # -- Middleware (applied in reverse order - last added runs first) ------ #

    app.add_middleware(StructuredLoggingMiddleware, tracker=tracker)
    app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SparkError, spark_error_handler)

    # -- Health-check endpoints -------------------------------------------- #

    @app.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        """Lightweight liveness probe - always returns healthy if the process
        is running."""
        return {"status": "healthy"}

    @app.get("/health/deep", tags=["health"])
    async def health_deep(request: Request) -> dict:
        """Deep readiness probe - verifies database and Redis connectivity."""
        result: dict = {
            "status": "healthy",
            "database": "connected",
            "redis": "connected",
        }

        # Database
        try:
            async with request.app.state.services.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("health_db_failure", error=str(exc))
            result["database"] = f"error: {exc}"
            result["status"] = "degraded"

        # Redis
        redis = request.app.state.redis
        if redis is None:
            result["redis"] = "not_configured"
        else:
            try:
                await redis.ping()
            except Exception as exc:
                logger.error("health_redis_failure", error=str(exc))
                result["redis"] = f"error: {exc}"
                result["status"] = "degraded"

        return result

    # -- API router -------------------------------------------------------- #

    from spark.api.router import router as api_router

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("spark.main:app", host="0.0.0.0", port=8000)
