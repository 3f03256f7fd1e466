# tests/test_remote_store.py — Remote store client tests
import httpx
import pytest

from errors import RemoteReadError, RemoteWriteError
from models import Table
from remote_store import RemoteStore, encode_filters


def test_encode_filters():
    params = encode_filters({
        "list_id": 3,
        "is_completed": False,
        "title": ("ilike", "%plan%"),
        "id": ("in", [1, 2, 5]),
        "due_date": ("is", None),
    })
    assert params == {
        "list_id": "eq.3",
        "is_completed": "eq.false",
        "title": "ilike.%plan%",
        "id": "in.(1,2,5)",
        "due_date": "is.null",
    }


@pytest.mark.asyncio
async def test_select_builds_query(store, seeded):
    rows = await store.select(Table.CARDS, {"list_id": 1}, columns="position", order="position", descending=True, limit=1)
    assert rows == [{"position": 2}]
    params = seeded.requests[0].url.params
    assert params["order"] == "position.desc"
    assert params["limit"] == "1"
    assert seeded.requests[0].url.path == "/rest/v1/cards"


@pytest.mark.asyncio
async def test_insert_asks_for_representation(store, seeded):
    row = await store.insert_one("lists", {"title": "Later", "project_id": 1, "position": 3})
    assert row["id"] == 5
    assert seeded.requests[0].headers["Prefer"] == "return=representation"


@pytest.mark.asyncio
async def test_transport_failure_becomes_read_error(store, seeded):
    seeded.down = True
    with pytest.raises(RemoteReadError) as exc:
        await store.select(Table.LISTS)
    assert exc.value.code == "BS-READ-001"
    assert exc.value.table == "lists"
    assert isinstance(exc.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_rejection_becomes_write_error(store, seeded):
    seeded.fail_on("PATCH", "cards", 1)
    with pytest.raises(RemoteWriteError) as exc:
        await store.update_by_id(Table.CARDS, 1, {"position": 4})
    assert exc.value.code == "BS-WRITE-002"
    assert exc.value.status_code == 400
    assert exc.value.severity == "warning"


@pytest.mark.asyncio
async def test_update_matching_nothing(store, seeded):
    with pytest.raises(RemoteWriteError) as exc:
        await store.update_by_id(Table.LISTS, 77, {"title": "x"})
    assert exc.value.code == "BS-WRITE-003"


@pytest.mark.asyncio
async def test_unfiltered_delete_refused(store, seeded):
    with pytest.raises(RemoteWriteError):
        await store.delete_where(Table.CARDS, {})
    assert seeded.requests == []


@pytest.mark.asyncio
async def test_malformed_body(fake_store):
    def handler(request):
        return httpx.Response(200, content=b"<html>gateway timeout</html>")

    client = RemoteStore(base_url="http://store.test", transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(RemoteReadError) as exc:
            await client.select(Table.PROJECTS)
        assert exc.value.code == "BS-READ-002"
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_ping(store, seeded):
    assert await store.ping() is True
    seeded.down = True
    assert await store.ping() is False
