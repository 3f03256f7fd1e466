# remote_store.py - Async client for the hosted table store (PostgREST dialect)
import os
from typing import Any, Dict, List, Optional, Tuple, Type, Union

import httpx

from errors import RemoteReadError, RemoteStoreError, RemoteWriteError

# Store configuration
STORE_URL = os.getenv("BOARDSYNC_STORE_URL", "http://localhost:54321")
STORE_KEY = os.getenv("BOARDSYNC_STORE_KEY", "")
STORE_TIMEOUT = float(os.getenv("BOARDSYNC_STORE_TIMEOUT", "10"))

# (transport failure, rejected by store)
_ERROR_CODES: Dict[Type[RemoteStoreError], Tuple[str, str]] = {
    RemoteReadError: ("BS-READ-001", "BS-READ-002"),
    RemoteWriteError: ("BS-WRITE-001", "BS-WRITE-002"),
}

FilterValue = Union[str, int, bool, Tuple[str, Any]]


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def encode_filters(filters: Optional[Dict[str, FilterValue]]) -> Dict[str, str]:
    """Turn {"list_id": 3, "title": ("ilike", "%x%")} into PostgREST query params.

    A bare value means equality; a tuple is (operator, operand). The ``in``
    operator takes an iterable.
    """
    params: Dict[str, str] = {}
    for column, value in (filters or {}).items():
        if isinstance(value, tuple):
            op, operand = value
            if op == "in":
                operand = "(" + ",".join(_encode_value(v) for v in operand) + ")"
            elif op == "is":
                operand = _encode_value(operand)
            params[column] = f"{op}.{operand}"
        else:
            params[column] = f"eq.{_encode_value(value)}"
    return params


def _table_name(table) -> str:
    return str(getattr(table, "value", table))


class RemoteStore:
    """Request/response access to the store's tables.

    Every method either returns the store's data or raises a
    RemoteStoreError subclass; nothing is retried.
    """

    def __init__(
        self,
        base_url: str = STORE_URL,
        api_key: str = STORE_KEY,
        timeout: float = STORE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def _send(
        self,
        method: str,
        table,
        operation: str,
        error_cls: Type[RemoteStoreError],
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        name = _table_name(table)
        transport_code, rejected_code = _ERROR_CODES[error_cls]
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = await self._client.request(method, f"/{name}", params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise error_cls(
                f"{operation} on {name} failed: {e}",
                code=transport_code, table=name, operation=operation,
            ) from e

        if resp.status_code >= 400:
            raise error_cls(
                f"{operation} on {name} rejected ({resp.status_code}): {resp.text[:200]}",
                code=rejected_code, table=name, operation=operation, status_code=resp.status_code,
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise error_cls(
                f"{operation} on {name} returned a malformed body",
                code=rejected_code, table=name, operation=operation, status_code=resp.status_code,
            ) from e

    async def select(
        self,
        table,
        filters: Optional[Dict[str, FilterValue]] = None,
        columns: str = "*",
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = {"select": columns, **encode_filters(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        rows = await self._send("GET", table, "select", RemoteReadError, params=params)
        return rows or []

    async def insert_one(self, table, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._send(
            "POST", table, "insert", RemoteWriteError,
            params={"select": "*"}, json=[row], prefer="return=representation",
        )
        if not rows:
            raise RemoteWriteError(
                f"insert on {_table_name(table)} returned no record",
                code="BS-WRITE-003", table=_table_name(table), operation="insert",
            )
        return rows[0]

    async def update_by_id(self, table, record_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        params = {"select": "*", **encode_filters({"id": record_id})}
        rows = await self._send(
            "PATCH", table, "update", RemoteWriteError,
            params=params, json=fields, prefer="return=representation",
        )
        if not rows:
            raise RemoteWriteError(
                f"update on {_table_name(table)} matched no record with id {record_id}",
                code="BS-WRITE-003", table=_table_name(table), operation="update",
            )
        return rows[0]

    async def delete_where(self, table, filters: Dict[str, FilterValue]) -> None:
        if not filters:
            # never issue an unfiltered delete
            raise RemoteWriteError(
                "delete without a filter", code="BS-WRITE-002",
                table=_table_name(table), operation="delete",
            )
        await self._send("DELETE", table, "delete", RemoteWriteError, params=encode_filters(filters))

    async def delete_by_id(self, table, record_id: int) -> None:
        await self.delete_where(table, {"id": record_id})

    async def ping(self) -> bool:
        """True when the store answers a trivial query."""
        try:
            await self.select("projects", columns="id", limit=1)
            return True
        except RemoteStoreError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


# Process-wide client, opened by the app lifespan
_store: Optional[RemoteStore] = None


async def init_store(transport: Optional[httpx.AsyncBaseTransport] = None) -> RemoteStore:
    """Create the shared store client"""
    global _store
    if _store is None:
        _store = RemoteStore(transport=transport)
    return _store


async def close_store():
    """Close the shared store client"""
    global _store
    if _store is not None:
        await _store.close()
        _store = None


def get_store() -> RemoteStore:
    """Dependency for getting the store client (FastAPI Depends)"""
    if _store is None:
        raise RuntimeError("Remote store not initialised; call init_store() first")
    return _store
