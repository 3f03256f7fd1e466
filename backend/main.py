# main.py — boardsync API
# Features:
# - Request correlation IDs (propagated into the diagnostic log)
# - Remote store client opened/closed with the app lifespan
# - Board, project catalogue and observability routers

import os
import uuid
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from logging_system import (
    LogCategory, RequestContext, get_logger, log_error, reset_current_context, set_current_context,
)
from remote_store import STORE_KEY, STORE_URL, init_store, close_store, get_store
from telemetry import setup_telemetry

# Logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("boardsync")


def _check_startup_config():
    """Validate remote store configuration on startup."""
    warnings = []

    if not STORE_KEY:
        warnings.append("BOARDSYNC_STORE_KEY is not set — requests to the store are unauthenticated")
    if not STORE_URL.startswith(("http://", "https://")):
        warnings.append(f"BOARDSYNC_STORE_URL does not look like an HTTP URL: {STORE_URL!r}")

    for w in warnings:
        logger.warning(w)

    return len(warnings) == 0


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting boardsync...")
    _check_startup_config()
    # instrument before the store client exists so its transport is traced
    setup_telemetry(app)
    await init_store()
    logger.info(f"Remote store client ready → {STORE_URL}")
    yield
    logger.info("Shutting down boardsync...")
    await close_store()


app = FastAPI(
    title="boardsync",
    description="Kanban board service over a hosted table store",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ============================================================
# CORS
# ============================================================

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:4200,http://localhost:3000"
    ).split(",")
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID", "X-Correlation-ID"],
    expose_headers=["X-Request-ID", "X-Correlation-ID"],
)


# ============================================================
# MIDDLEWARE: Correlation IDs + Timing
# ============================================================

@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    correlation_id = request.headers.get("X-Correlation-ID", request_id)
    request.state.request_id = request_id
    request.state.correlation_id = correlation_id
    context = RequestContext.create(request_id, correlation_id)
    token = set_current_context(context)

    try:
        response = await call_next(request)
    finally:
        reset_current_context(token)
    duration = context.elapsed_ms / 1000

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Correlation-ID"] = correlation_id
    response.headers["X-Response-Time"] = f"{duration:.4f}s"

    logger.info(
        f"{request.method} {request.url.path} → {response.status_code} "
        f"({duration:.3f}s) [rid={request_id[:8]}]"
    )
    return response


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # pydantic ctx values are not always JSON serialisable
    errors = [
        {"type": str(err.get("type", "unknown")), "loc": list(err.get("loc", [])), "msg": str(err.get("msg", ""))}
        for err in exc.errors()
    ]
    get_logger().warning(
        f"Rejected {request.method} {request.url.path}: {len(errors)} validation error(s)",
        category=LogCategory.REQUEST,
        metadata={"fields": [".".join(str(p) for p in e["loc"]) for e in errors]},
    )
    return JSONResponse(
        status_code=422,
        content={
            "detail": errors,
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    log_error(f"Unhandled exception on {request.method} {request.url.path}", error=exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "request_id": getattr(request.state, "request_id", None),
        },
    )


# ============================================================
# ROUTERS
# ============================================================

from routers import board, projects, observability

app.include_router(projects.router)
app.include_router(board.router)
app.include_router(observability.router)


# ============================================================
# HEALTH & ROOT
# ============================================================

@app.get("/health")
async def health_check():
    """Health check with remote store reachability"""
    try:
        store_status = "connected" if await get_store().ping() else "unreachable"
    except RuntimeError as e:
        store_status = f"error: {str(e)[:100]}"

    return {
        "status": "healthy" if store_status == "connected" else "degraded",
        "version": "1.0.0",
        "environment": os.getenv("ENVIRONMENT", "development"),
        "store": store_status,
    }


@app.get("/")
async def root():
    return {
        "name": "boardsync",
        "version": "1.0.0",
        "description": "Kanban board service over a hosted table store",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=os.getenv("ENVIRONMENT") != "production",
    )
