"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError

from backend.app.api.router import api_router
from backend.app.config import get_settings
from backend.app.core.exceptions import PresetStoreError, TransientIOError
from backend.app.core.logging import setup_logging
from backend.app.db.session import async_session_maker, close_db, init_db
from backend.app.models.preset import Preset

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    logger.info(f"Starting {settings.app_name} ({settings.app_env})")
    await init_db()
    yield
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Community presets: saved tool configurations, visibility and reactions",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# The tool frontend sends X-User-* identity headers cross-origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url] if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)


@app.exception_handler(PresetStoreError)
async def preset_store_error_handler(request: Request, exc: PresetStoreError) -> JSONResponse:
    """Map store errors onto their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(DBAPIError)
async def database_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Driver failures (lost connection, lock timeout) are transient for the caller."""
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    error = TransientIOError("Storage temporarily unavailable")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.include_router(api_router, prefix="/api")


def _elapsed_ms(start: datetime) -> float:
    return round((datetime.now(timezone.utc) - start).total_seconds() * 1000, 2)


async def _check_database() -> dict:
    start = datetime.now(timezone.utc)
    async with async_session_maker() as session:
        presets = await session.scalar(select(func.count()).select_from(Preset))
    return {"status": "up", "latency_ms": _elapsed_ms(start), "presets": presets}


def _check_redis() -> dict:
    client = redis.Redis.from_url(str(settings.redis_url), socket_timeout=5)
    try:
        start = datetime.now(timezone.utc)
        client.ping()
        return {"status": "up", "latency_ms": _elapsed_ms(start)}
    finally:
        client.close()


@app.get("/health")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.app_env,
    }


@app.get("/health/deep")
async def deep_health_check() -> dict:
    """
    Deep health check endpoint with dependency status.

    The database is required: without it the store is unhealthy. Redis only
    carries the count audit schedule, so losing it degrades the service.
    """
    services: dict[str, dict] = {}
    overall_status = "healthy"

    try:
        services["database"] = await _check_database()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        services["database"] = {"status": "down", "error": str(e)}
        overall_status = "unhealthy"

    try:
        services["redis"] = _check_redis()
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        services["redis"] = {"status": "down", "error": str(e)}
        if overall_status == "healthy":
            overall_status = "degraded"

    return {
        "status": overall_status,
        "app_name": settings.app_name,
        "environment": settings.app_env,
        "services": services,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "docs": "/docs" if settings.debug else "disabled",
        "health": "/health",
    }
