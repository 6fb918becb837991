"""
MindPair — FastAPI Application Entry Point

``create_app()`` assembles the service:

- structlog JSON logging, level from ``LOG_LEVEL``
- lifespan: SQL pool warm-up on startup; on shutdown, wait for in-flight
  requests to drain before the pool is disposed
- middleware: CORS, per-request deadline, request context (request id bound
  into every log line and echoed as ``X-Request-ID``)
- ``/health`` (liveness) and ``/health/deep`` (store readiness)
- the versioned API under ``/api/v1``
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mindpair.api.deps import get_gateway
from mindpair.api.router import router as api_router
from mindpair.config import Settings, get_settings

REQUEST_ID_HEADER = "X-Request-ID"


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger("mindpair.app")


# ---------------------------------------------------------------------------
# In-flight request tracking
# ---------------------------------------------------------------------------

class InFlightRequests:
    """Counts requests being served so shutdown can wait for them."""

    def __init__(self) -> None:
        self.count = 0
        self._idle = asyncio.Event()
        self._idle.set()

    def enter(self) -> None:
        self.count += 1
        self._idle.clear()

    def leave(self) -> None:
        self.count -= 1
        if self.count == 0:
            self._idle.set()

    async def drain(self, timeout: float) -> bool:
        """Wait until no request is in flight; ``False`` on timeout."""
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class DeadlineMiddleware(BaseHTTPMiddleware):
    """Answer 504 when a request runs past its wall-clock budget."""

    def __init__(self, app, timeout_seconds: float) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("request_deadline_exceeded", timeout=self.timeout_seconds)
            return JSONResponse(status_code=504, content={"detail": "Request timed out"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id into the log context, count the request as in
    flight, and log its outcome and duration."""

    def __init__(self, app, in_flight: InFlightRequests) -> None:
        super().__init__(app)
        self.in_flight = in_flight

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        self.in_flight.enter()
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        finally:
            self.in_flight.leave()

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "request_handled",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)
    in_flight = InFlightRequests()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "startup_begin",
            environment=settings.ENVIRONMENT,
            store_backend=settings.STORE_BACKEND,
        )
        if settings.STORE_BACKEND == "sql":
            from mindpair.database import engine

            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("database_pool_warmed")
        logger.info("startup_complete")

        yield

        logger.info("shutdown_begin", in_flight=in_flight.count)
        if not await in_flight.drain(settings.SHUTDOWN_DRAIN_SECONDS):
            logger.warning("shutdown_drain_timeout", in_flight=in_flight.count)
        if settings.STORE_BACKEND == "sql":
            from mindpair.database import engine

            await engine.dispose()
            logger.info("database_pool_closed")
        logger.info("shutdown_complete")

    app = FastAPI(
        title="MindPair",
        description="Rumination questionnaire with paired comparison invites",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
    )

    # Last added runs first: CORS, then request context, then the deadline
    app.add_middleware(DeadlineMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
    app.add_middleware(RequestContextMiddleware, in_flight=in_flight)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        return {"status": "healthy"}

    @app.get("/health/deep", tags=["health"])
    async def health_deep() -> dict:
        """Store readiness plus the state of the score-band cache."""
        gateway = app.dependency_overrides.get(get_gateway, get_gateway)()
        result: dict = {
            "status": "healthy",
            "store_backend": settings.STORE_BACKEND,
            "store": "in_process",
            "score_bands_cached": gateway.attempts.band_cache.loaded,
            "in_flight": in_flight.count,
        }
        if settings.STORE_BACKEND == "sql":
            from mindpair.database import engine

            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                result["store"] = "connected"
            except Exception as exc:
                logger.error("health_store_failure", error=str(exc))
                result["store"] = f"error: {exc}"
                result["status"] = "degraded"
        return result

    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
