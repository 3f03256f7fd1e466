# tests/conftest.py — Shared test fixtures
import os
import re
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

os.environ["BOARDSYNC_STORE_URL"] = "http://store.test"
os.environ["BOARDSYNC_STORE_KEY"] = "test-key"
os.environ["ENVIRONMENT"] = "test"

import remote_store
from dashboard import Dashboard, reset_dashboards
from logging_system import get_logger
from main import app
from remote_store import RemoteStore

_EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _text(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _matches(row: dict, column: str, expression: str) -> bool:
    op, _, operand = expression.partition(".")
    value = row.get(column)
    if op == "eq":
        return _text(value) == operand
    if op == "in":
        return _text(value) in operand.strip("()").split(",")
    if op == "ilike":
        pattern = ".*".join(re.escape(part) for part in operand.split("%"))
        return value is not None and re.fullmatch(pattern, str(value), re.IGNORECASE) is not None
    if op == "is":
        return _text(value) == operand
    raise AssertionError(f"fake store does not support operator {op!r}")


class FakeStore:
    """In-memory stand-in for the hosted store's REST interface."""

    RESERVED = {"select", "order", "limit"}

    def __init__(self):
        self.tables = {"projects": [], "lists": [], "cards": []}
        self.requests = []
        self.down = False
        self._failures = set()
        self._next_id = {name: 1 for name in self.tables}
        self._clock = 0

    # -- test helpers --------------------------------------------------

    def seed(self, table: str, **row) -> dict:
        return self._insert(table, row)

    def fail_on(self, method: str, table: str, record_id=None) -> None:
        self._failures.add((method, table, record_id))

    def row(self, table: str, record_id: int) -> dict:
        return next(r for r in self.tables[table] if r["id"] == record_id)

    def writes(self, method: str = "PATCH", table: str = None):
        return [
            r for r in self.requests
            if r.method == method and (table is None or r.url.path.endswith(f"/{table}"))
        ]

    # -- transport ------------------------------------------------------

    def _insert(self, table: str, row: dict) -> dict:
        self._clock += 1
        record = {
            "id": self._next_id[table],
            **row,
            "created_at": (_EPOCH + timedelta(seconds=self._clock)).isoformat(),
        }
        self._next_id[table] += 1
        self.tables[table].append(record)
        return dict(record)

    def _failing(self, method: str, table: str, filters: dict) -> bool:
        record_id = filters.get("id", "")
        record_id = int(record_id[3:]) if record_id.startswith("eq.") else None
        return (method, table, None) in self._failures or (method, table, record_id) in self._failures

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("store unreachable", request=request)

        table = request.url.path.rsplit("/", 1)[-1]
        params = dict(request.url.params.items())
        filters = {k: v for k, v in params.items() if k not in self.RESERVED}
        if table not in self.tables:
            return httpx.Response(404, json={"message": f"relation {table} does not exist"})
        if self._failing(request.method, table, filters):
            return httpx.Response(400, json={"message": "rejected by fake store"})

        matched = [
            r for r in self.tables[table]
            if all(_matches(r, col, expr) for col, expr in filters.items())
        ]

        if request.method == "GET":
            if "order" in params:
                column, _, direction = params["order"].partition(".")
                matched.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=direction == "desc")
            if "limit" in params:
                matched = matched[: int(params["limit"])]
            columns = params.get("select", "*")
            if columns != "*":
                wanted = columns.split(",")
                matched = [{c: r.get(c) for c in wanted} for r in matched]
            return httpx.Response(200, json=[dict(r) for r in matched])

        if request.method == "POST":
            rows = json.loads(request.content)
            return httpx.Response(201, json=[self._insert(table, row) for row in rows])

        if request.method == "PATCH":
            fields = json.loads(request.content)
            for r in matched:
                r.update(fields)
            return httpx.Response(200, json=[dict(r) for r in matched])

        if request.method == "DELETE":
            ids = {r["id"] for r in matched}
            self.tables[table] = [r for r in self.tables[table] if r["id"] not in ids]
            return httpx.Response(204)

        return httpx.Response(405)


@pytest.fixture(autouse=True)
def quiet_logger():
    logger = get_logger()
    logger.echo = False
    logger.buffer.clear()
    yield logger
    logger.buffer.clear()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def seeded(fake_store):
    """Project 1 with lists Backlog/Doing/Done; Backlog holds three cards, Doing two."""
    fake_store.seed("projects", title="Roadmap", description="Q3 roadmap")
    fake_store.seed("projects", title="Side project", description=None)
    backlog = fake_store.seed("lists", title="Backlog", project_id=1, position=0)
    doing = fake_store.seed("lists", title="Doing", project_id=1, position=1)
    fake_store.seed("lists", title="Done", project_id=1, position=2)
    fake_store.seed("lists", title="Ideas backlog", project_id=2, position=0)
    for position, title in enumerate(["Draft brief", "Sketch UI", "Pick colours"]):
        fake_store.seed(
            "cards", list_id=backlog["id"], title=title, description=None, due_date=None,
            position=position, is_completed=False, status="todo",
        )
    for position, title in enumerate(["Wire API", "Deploy"]):
        fake_store.seed(
            "cards", list_id=doing["id"], title=title, description=None, due_date=None,
            position=position, is_completed=False, status="in_progress",
        )
    return fake_store


@pytest_asyncio.fixture
async def store(fake_store):
    client = RemoteStore(
        base_url="http://store.test",
        api_key="test-key",
        transport=httpx.MockTransport(fake_store.handler),
    )
    yield client
    await client.close()


@pytest_asyncio.fixture
async def dashboard(store, seeded):
    board = Dashboard.for_project(store, 1)
    await board.open_project()
    seeded.requests.clear()
    return board


@pytest_asyncio.fixture
async def client(fake_store):
    """HTTP test client with the shared store pointed at the fake"""
    await remote_store.close_store()
    await remote_store.init_store(transport=httpx.MockTransport(fake_store.handler))
    reset_dashboards()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    reset_dashboards()
    await remote_store.close_store()
