"""
Tandem — FastAPI Application Entry Point

``create_app`` wires the HTTP surface:

- lifespan: warm the relational pool, connect MongoDB (best effort), and
  release both on shutdown
- one request-context middleware that tags every log line with a request id,
  enforces the wall-clock timeout and writes the access log
- ``TandemError`` subclasses rendered as ``{"detail", "code"}``
- liveness and deep readiness checks
- the local avatar tree and the versioned API router
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.router import router as api_router
from app.config import Settings, get_settings
from app.database import async_session_factory, engine
from app.exceptions import TandemError
from app.mongo import close_mongo, connect_mongo, get_mongo_client

REQUEST_ID_HEADER = "X-Request-ID"


def configure_logging(level: str) -> None:
    """JSON lines on stdout; request-scoped context merged into every event."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger("tandem")


# ---------------------------------------------------------------------------
# Readiness checks
# ---------------------------------------------------------------------------

async def check_database(
    session_factory: async_sessionmaker[AsyncSession], timeout: float
) -> Optional[str]:
    """Return ``None`` when the relational store answers, else the error."""
    try:
        async with session_factory() as session:
            await asyncio.wait_for(session.execute(text("SELECT 1")), timeout=timeout)
    except Exception as exc:
        logger.error("health_db_failure", error=str(exc))
        return str(exc) or type(exc).__name__
    return None


async def check_mongo(client, timeout: float) -> Optional[str]:
    if client is None:
        return "client not initialised"
    try:
        await asyncio.wait_for(client.admin.command("ping"), timeout=timeout)
    except Exception as exc:
        logger.error("health_mongo_failure", error=str(exc))
        return str(exc) or type(exc).__name__
    return None


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("startup_begin", environment=settings.ENVIRONMENT)

    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_ready")

    # Chat answers 503 until MongoDB is reachable; matching never needs it.
    try:
        await connect_mongo()
    except Exception:
        logger.exception("mongo_connect_failed")

    yield

    logger.info("shutdown_begin")
    await close_mongo()
    await engine.dispose()
    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request, apply the
    wall-clock timeout and log the outcome."""

    def __init__(self, app, timeout_seconds: float) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                call_next(request), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("request_timeout", timeout=self.timeout_seconds)
            response = JSONResponse(
                status_code=504,
                content={"detail": "request timed out", "code": "request_timeout"},
            )
        except Exception:
            logger.exception("request_error")
            raise
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            structlog.contextvars.unbind_contextvars("request_id", "method", "path")

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "request_handled",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=duration_ms,
        )
        return response


async def tandem_error_handler(request: Request, exc: TandemError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("domain_error", code=exc.code, path=request.url.path, detail=exc.detail)
    else:
        logger.info("domain_error", code=exc.code, path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    application = FastAPI(
        title="Tandem",
        description="Mutual-like matching and match-gated chat",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
    )

    application.add_middleware(
        RequestContextMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS
    )
    # Added last so it wraps everything, including timeout responses.
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    application.add_exception_handler(TandemError, tandem_error_handler)

    @application.get("/", tags=["health"])
    async def root() -> dict:
        return {"service": "tandem", "version": application.version}

    @application.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        return {"status": "healthy"}

    @application.get("/health/deep", tags=["health"])
    async def health_deep() -> dict:
        """Readiness: both stores answer within the storage timeout."""
        timeout = settings.STORAGE_TIMEOUT_SECONDS
        db_error, mongo_error = await asyncio.gather(
            check_database(async_session_factory, timeout),
            check_mongo(get_mongo_client(), timeout),
        )
        return {
            "status": "healthy" if db_error is None and mongo_error is None else "degraded",
            "database": "connected" if db_error is None else f"error: {db_error}",
            "mongodb": "connected" if mongo_error is None else f"error: {mongo_error}",
        }

    # Local avatar backend; the prefix is validated never to cover /api.
    application.mount(
        settings.AVATAR_URL_PREFIX,
        StaticFiles(directory=settings.AVATAR_STORAGE_DIR, check_dir=False),
        name="avatars",
    )
    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()
