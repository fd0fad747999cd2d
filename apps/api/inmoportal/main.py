"""FastAPI application for the real-estate catalog."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401  (registers every table)
from .core.config import settings
from .core.errors import AuthenticationRequiredError, NotFoundError, PermissionDeniedError, StorageError
from .db.session import ChangeCapturingSession, SessionLocal, engine
from .models.base import Base
from .routers import admin, catalog, functions
from .services import notifications
from .services.invalidation import RealtimeInvalidationBridge
from .services.queries import CatalogQueries
from .services.query_cache import FileCachePersister, QueryCache
from .services.realtime import change_feed, install_change_capture

logger = logging.getLogger(__name__)


def build_query_cache() -> QueryCache:
    persister = None
    if settings.cache_path:
        persister = FileCachePersister(
            settings.cache_path,
            storage_key=settings.cache_storage_key,
            max_age=settings.cache_gc_seconds,
        )
    cache = QueryCache(
        default_stale_time=settings.cache_default_stale_seconds,
        default_gc_time=settings.cache_gc_seconds,
        retry=settings.cache_retry,
        persister=persister,
    )
    cache.restore()
    return cache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=settings.log_level.upper())

    if settings.is_sqlite:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    install_change_capture(ChangeCapturingSession, change_feed)
    cache = build_query_cache()
    bridge = RealtimeInvalidationBridge(change_feed, cache)
    await bridge.start()

    app.state.cache = cache
    app.state.queries = CatalogQueries(cache, SessionLocal, settings)
    app.state.bridge = bridge
    logger.info("Catalog API started (%s)", settings.app_env)
    try:
        yield
    finally:
        await bridge.stop()
        await cache.flush()
        await notifications.wait_for_pending(timeout=settings.notification_timeout_seconds)
        await engine.dispose()


app = FastAPI(title="Real Estate Catalog API", version="0.1.0", lifespan=lifespan)

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(PermissionDeniedError)
async def permission_handler(request: Request, exc: PermissionDeniedError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(AuthenticationRequiredError)
async def authentication_handler(request: Request, exc: AuthenticationRequiredError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.warning("Storage failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def backend_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Backend request failed on %s", request.url.path)
    return JSONResponse(status_code=502, content={"detail": "Backend request failed"})


app.include_router(catalog.router, prefix="/api", tags=["catalog"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(functions.router, prefix="/functions/v1", tags=["functions"])

app.mount("/storage", StaticFiles(directory=settings.storage_root, check_dir=False), name="storage")


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str]:
    """Simple liveness probe."""

    return {"status": "ok"}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)
