# routers/observability.py — Diagnostic log and store reachability
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Type

from fastapi import APIRouter, Depends, HTTPException, Query

from dashboard import open_dashboards
from logging_system import LogCategory, LogLevel, get_logger
from models import Table
from remote_store import RemoteStore, get_store

router = APIRouter(prefix="/api/v1/observability", tags=["Observability"])


def _choice(enum: Type[Enum], value: Optional[str], label: str):
    if value is None:
        return None
    try:
        return enum(value.lower())
    except ValueError:
        raise HTTPException(400, f"Invalid {label}: {value}")


# ── Logs ─────────────────────────────────────────────────────────────────────

@router.get("/logs")
async def get_logs(
    level: Optional[str] = Query(None, description="Minimum log level"),
    category: Optional[str] = Query(None),
    table: Optional[str] = Query(None, description="Store table the entry concerns"),
    search: Optional[str] = Query(None, description="Substring of the message"),
    correlation_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
):
    """Newest entries first."""
    table_enum = _choice(Table, table, "table")
    entries = get_logger().get_logs(
        level=_choice(LogLevel, level, "log level"),
        category=_choice(LogCategory, category, "category"),
        table=table_enum.value if table_enum else None,
        correlation_id=correlation_id,
        search=search,
        limit=limit,
    )
    return {
        "logs": [e.to_dict() for e in entries],
        "count": len(entries),
        "filters": {
            "level": level,
            "category": category,
            "table": table,
            "search": search,
            "correlation_id": correlation_id,
        },
    }


@router.get("/logs/stats")
async def get_log_stats():
    return get_logger().get_stats()


@router.get("/logs/levels")
async def get_log_levels():
    return {"levels": [level.value for level in LogLevel]}


@router.get("/logs/categories")
async def get_log_categories():
    return {"categories": [c.value for c in LogCategory]}


# ── Health ───────────────────────────────────────────────────────────────────

@router.get("/health")
async def observability_health(store: RemoteStore = Depends(get_store)):
    """Store reachability, open boards and remote failures seen so far."""
    logger = get_logger()
    failures = [
        e for e in logger.buffer.entries()
        if e.category in (LogCategory.REMOTE_READ, LogCategory.REMOTE_WRITE)
    ]
    stats = logger.get_stats()
    store_ok = await store.ping()
    return {
        "status": "healthy" if store_ok else "degraded",
        "store": "reachable" if store_ok else "unreachable",
        "open_boards": open_dashboards(),
        "logging": {
            "total_logs": stats["total_logs"],
            "buffer_usage_pct": stats["buffer_usage_pct"],
            "remote_failures": len(failures),
            "remote_failures_by_table": {
                t.value: sum(1 for e in failures if e.table == t.value) for t in Table
            },
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
