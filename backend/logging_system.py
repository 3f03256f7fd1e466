"""
boardsync — Diagnostic Log

Every failed remote call, every reconciliation batch and every board
mutation is recorded here as a structured entry tagged with the request
correlation id and, where one applies, the store table involved. Entries
live in a bounded ring buffer served by the observability router and are
echoed as JSON lines through the ``boardsync.diagnostic`` stdlib logger.
"""

import contextvars
import json
import logging
import os
import time
import traceback
import uuid
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

_echo = logging.getLogger("boardsync.diagnostic")


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def numeric(self) -> int:
        return logging.getLevelName(self.name)


class LogCategory(str, Enum):
    REQUEST = "request"
    REMOTE_READ = "remote_read"
    REMOTE_WRITE = "remote_write"
    RECONCILE = "reconcile"
    USER_ACTION = "user_action"
    SYSTEM = "system"


@dataclass
class LogEntry:
    id: str
    timestamp: str
    level: LogLevel
    category: LogCategory
    message: str
    service: str
    correlation_id: Optional[str] = None
    request_id: Optional[str] = None
    table: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None
    stack_trace: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["level"] = self.level.value
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class RequestContext:
    """Ids of the HTTP request currently being served"""
    request_id: str
    correlation_id: str
    start_time: float = field(default_factory=time.perf_counter)

    @staticmethod
    def create(request_id: Optional[str] = None, correlation_id: Optional[str] = None) -> "RequestContext":
        rid = request_id or uuid.uuid4().hex[:12]
        return RequestContext(request_id=rid, correlation_id=correlation_id or rid)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.start_time) * 1000


# One context per asyncio task; set and reset by the HTTP middleware
_request_context: contextvars.ContextVar[Optional[RequestContext]] = contextvars.ContextVar(
    "boardsync_request_context", default=None
)


def get_current_context() -> Optional[RequestContext]:
    return _request_context.get()


def set_current_context(context: RequestContext) -> contextvars.Token:
    return _request_context.set(context)


def reset_current_context(token: contextvars.Token) -> None:
    _request_context.reset(token)


class LogBuffer:
    """Ring buffer of recent entries, newest last"""

    def __init__(self, max_size: int = 10000):
        self.max_size = max_size
        self._entries: deque = deque(maxlen=max_size)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def clear(self) -> int:
        dropped = len(self._entries)
        self._entries.clear()
        return dropped

    def matching(
        self,
        level: Optional[LogLevel] = None,
        category: Optional[LogCategory] = None,
        correlation_id: Optional[str] = None,
        table: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
    ) -> List[LogEntry]:
        """Newest first. ``level`` is a minimum, everything else must match exactly."""
        needle = search.lower() if search else None
        found: List[LogEntry] = []
        for entry in reversed(self._entries):
            if level and entry.level.numeric < level.numeric:
                continue
            if category and entry.category != category:
                continue
            if correlation_id and entry.correlation_id != correlation_id:
                continue
            if table and entry.table != table:
                continue
            if needle and needle not in entry.message.lower():
                continue
            found.append(entry)
            if len(found) >= limit:
                break
        return found


def _describe_error(error: Exception) -> Dict[str, Any]:
    described = {"type": type(error).__name__, "message": str(error)}
    # RemoteStoreError carries code / table / operation / status_code
    to_dict = getattr(error, "to_dict", None)
    if callable(to_dict):
        described.update(to_dict())
    return described


class StructuredLogger:
    def __init__(
        self,
        service_name: str = "boardsync",
        min_level: LogLevel = LogLevel.INFO,
        buffer_size: int = 10000,
        output_handlers: Optional[List[Callable[[LogEntry], None]]] = None,
        echo: bool = True,
    ):
        self.service_name = service_name
        self.min_level = min_level
        self.buffer = LogBuffer(buffer_size)
        self.output_handlers = list(output_handlers or [])
        self.echo = echo

    def _log(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        *,
        table: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
        duration_ms: Optional[float] = None,
    ) -> Optional[LogEntry]:
        if level.numeric < self.min_level.numeric:
            return None

        context = get_current_context()
        entry = LogEntry(
            id=uuid.uuid4().hex[:12],
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            category=category,
            message=message,
            service=self.service_name,
            correlation_id=context.correlation_id if context else None,
            request_id=context.request_id if context else None,
            table=table,
            duration_ms=round(duration_ms, 3) if duration_ms is not None else None,
            metadata=metadata or {},
        )
        if error is not None:
            entry.error = _describe_error(error)
            if entry.table is None:
                entry.table = entry.error.get("table")
            if error.__traceback__ is not None:
                entry.stack_trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))

        self.buffer.append(entry)
        if self.echo:
            _echo.log(level.numeric, entry.to_json())
        for handler in self.output_handlers:
            try:
                handler(entry)
            except Exception:
                _echo.exception("Diagnostic handler %r failed", handler)
        return entry

    def debug(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.DEBUG, category, message, **kwargs)

    def info(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.INFO, category, message, **kwargs)

    def warning(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.WARNING, category, message, **kwargs)

    def error(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.ERROR, category, message, **kwargs)

    # ── Board events ─────────────────────────────────────────────────────

    def remote_failure(self, message: str, error: Exception, write: bool, **kwargs) -> Optional[LogEntry]:
        """A store call the gateway absorbed; logged at the severity of its error code."""
        severity = getattr(error, "severity", LogLevel.ERROR.value)
        return self._log(
            LogLevel(severity),
            LogCategory.REMOTE_WRITE if write else LogCategory.REMOTE_READ,
            message,
            error=error,
            **kwargs,
        )

    def reconcile(self, table: str, intents: int, failed: List[int], duration_ms: float) -> Optional[LogEntry]:
        return self._log(
            LogLevel.WARNING if failed else LogLevel.INFO,
            LogCategory.RECONCILE,
            f"Reconciled {intents} {table} position(s), {len(failed)} failed",
            table=table,
            duration_ms=duration_ms,
            metadata={"intents": intents, "failed_ids": list(failed)},
        )

    def user_action(self, action: str, resource: str, metadata: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        kind, _, resource_id = resource.partition(":")
        return self.info(
            f"{action} {resource}",
            category=LogCategory.USER_ACTION,
            table=f"{kind}s" if resource_id else None,
            metadata={"action": action, "resource": resource, **(metadata or {})},
        )

    # ── Queries ──────────────────────────────────────────────────────────

    def get_logs(self, **filters) -> List[LogEntry]:
        return self.buffer.matching(**filters)

    def get_stats(self) -> Dict[str, Any]:
        entries = self.buffer.entries()
        return {
            "total_logs": len(entries),
            "level_distribution": dict(Counter(e.level.value for e in entries)),
            "category_distribution": dict(Counter(e.category.value for e in entries)),
            "table_distribution": dict(Counter(e.table for e in entries if e.table)),
            "error_codes": dict(Counter(
                e.error.get("code") or e.error["type"] for e in entries if e.error
            )),
            "buffer_size": self.buffer.max_size,
            "buffer_usage_pct": round(len(entries) / self.buffer.max_size * 100, 2),
        }


_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    global _logger
    if _logger is None:
        _logger = StructuredLogger(min_level=LogLevel.DEBUG if os.getenv("DEBUG") else LogLevel.INFO)
    return _logger


def log_error(message: str, error: Optional[Exception] = None, **kwargs) -> Optional[LogEntry]:
    return get_logger().error(message, error=error, **kwargs)
