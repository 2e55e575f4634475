"""
backend/ligalive/main.py

Purpose:
    FastAPI application bootstrap: database and notification lifecycle,
    middleware and router wiring, and the mapping of typed failures to HTTP
    responses.

Dependencies:
    - ligalive.database
    - ligalive.services.event_bus
    - ligalive.services.websocket_manager
"""

import logging
from contextlib import asynccontextmanager

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)

import ligalive.database as _db
from ligalive.config import settings
from ligalive.database import close_db, connect_db
from ligalive.errors import LigaLiveError
from ligalive.middleware.logging import StructuredLoggingMiddleware, setup_logging

logger = logging.getLogger("ligalive")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()
    from ligalive.services.event_bus import event_bus
    from ligalive.services.event_handlers import register_event_handlers
    from ligalive.services.websocket_manager import websocket_manager

    if settings.WS_EVENTS_ENABLED:
        await websocket_manager.start()
        logger.info("WebSocket realtime manager enabled")
    else:
        logger.info("WebSocket realtime manager disabled via config")
    if settings.EVENT_BUS_ENABLED:
        register_event_handlers(event_bus)
        await event_bus.start()
        logger.info("Event bus enabled")
    else:
        logger.info("Event bus disabled via config")

    yield

    if settings.EVENT_BUS_ENABLED:
        await event_bus.stop()
    if settings.WS_EVENTS_ENABLED:
        await websocket_manager.stop()
    await close_db()


app = FastAPI(
    title="LigaLive",
    description="Live match tracking and league standings",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
from ligalive.routers.goals import router as goals_router
from ligalive.routers.live_matches import router as live_matches_router
from ligalive.routers.matches import router as matches_router
from ligalive.routers.standings import router as standings_router
from ligalive.routers.ws import router as ws_router

app.include_router(live_matches_router)
app.include_router(matches_router)
app.include_router(standings_router)
app.include_router(goals_router)
app.include_router(ws_router)


@app.exception_handler(LigaLiveError)
async def ligalive_error_handler(request: Request, exc: LigaLiveError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(InvalidId)
async def invalid_object_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"detail": "Invalid ID."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        # Strip the "body" / "query" prefix for cleaner messages
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"detail": "Duplicate entry."})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check -- verifies the DB connection and reports the notification pipeline."""
    from ligalive.services.event_bus import event_bus
    from ligalive.services.websocket_manager import websocket_manager

    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except PyMongoError:
        logger.warning("Health check ping failed", exc_info=True)
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "event_bus": {"running": event_bus.running},
        "websocket": {"active_connections": websocket_manager.active_connections},
    }
