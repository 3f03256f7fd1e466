# tests/test_board.py — Board router tests
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_get_board(client: AsyncClient, seeded):
    """Board lists come back in position order with their cards"""
    resp = await client.get("/api/v1/projects/1/board")
    assert resp.status_code == 200
    data = resp.json()
    assert data["project"]["title"] == "Roadmap"
    assert [board_list["title"] for board_list in data["lists"]] == ["Backlog", "Doing", "Done"]
    assert data["lists"][0]["card_count"] == 3
    assert [c["title"] for c in data["lists"][1]["cards"]] == ["Wire API", "Deploy"]
    assert data["diverged"] == {"lists": [], "cards": []}


@pytest.mark.asyncio
async def test_statuses(client: AsyncClient):
    resp = await client.get("/api/v1/projects/1/board/statuses")
    assert resp.status_code == 200
    assert [s["status"] for s in resp.json()] == ["todo", "in_progress", "review", "done"]


@pytest.mark.asyncio
async def test_add_list(client: AsyncClient, seeded):
    resp = await client.post("/api/v1/projects/1/board/lists", json={"title": "Review"})
    assert resp.status_code == 201
    assert resp.json()["position"] == 3


@pytest.mark.asyncio
async def test_add_blank_list_rejected(client: AsyncClient, seeded):
    resp = await client.post("/api/v1/projects/1/board/lists", json={"title": "  "})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_add_list_store_failure(client: AsyncClient, seeded):
    seeded.fail_on("POST", "lists")
    resp = await client.post("/api/v1/projects/1/board/lists", json={"title": "Review"})
    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_add_card_and_change_status(client: AsyncClient, seeded):
    resp = await client.post(
        "/api/v1/projects/1/board/lists/3/cards",
        json={"title": "Release notes", "due_date": "2026-11-30"},
    )
    assert resp.status_code == 201
    card = resp.json()
    assert card["status"] == "todo"
    assert card["is_completed"] is False

    resp = await client.post(
        f"/api/v1/projects/1/board/cards/{card['id']}/status", json={"status": "done"},
    )
    assert resp.status_code == 200
    assert resp.json()["is_completed"] is True


@pytest.mark.asyncio
async def test_invalid_status_rejected(client: AsyncClient, seeded):
    resp = await client.post("/api/v1/projects/1/board/cards/1/status", json={"status": "blocked"})
    assert resp.status_code == 422
    assert "request_id" in resp.json()


@pytest.mark.asyncio
async def test_card_on_unknown_list(client: AsyncClient, seeded):
    resp = await client.post("/api/v1/projects/1/board/lists/42/cards", json={"title": "Lost"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_edit_card(client: AsyncClient, seeded):
    resp = await client.patch("/api/v1/projects/1/board/cards/2", json={"title": "Sketch flows"})
    assert resp.status_code == 200
    assert resp.json()["title"] == "Sketch flows"

    resp = await client.patch("/api/v1/projects/1/board/cards/2", json={})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_rename_list(client: AsyncClient, seeded):
    resp = await client.patch("/api/v1/projects/1/board/lists/2", json={"title": "In progress"})
    assert resp.status_code == 200
    assert resp.json()["title"] == "In progress"


@pytest.mark.asyncio
async def test_card_drop_across_lists(client: AsyncClient, seeded):
    resp = await client.post(
        "/api/v1/projects/1/board/cards/drop",
        json={"source_list_id": 1, "dest_list_id": 2, "previous_index": 0, "current_index": 1},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["batch"]["confirmed"] is True
    assert data["batch"]["intents"][0] == {"id": 1, "position": 1, "parent_id": 2, "ok": True}
    doing = data["board"]["lists"][1]
    assert [c["title"] for c in doing["cards"]] == ["Wire API", "Draft brief", "Deploy"]


@pytest.mark.asyncio
async def test_card_drop_bad_index(client: AsyncClient, seeded):
    resp = await client.post(
        "/api/v1/projects/1/board/cards/drop",
        json={"source_list_id": 1, "dest_list_id": 1, "previous_index": 0, "current_index": 7},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_drop_reports_failures(client: AsyncClient, seeded):
    seeded.fail_on("PATCH", "lists", 1)
    resp = await client.post(
        "/api/v1/projects/1/board/lists/drop",
        json={"previous_index": 0, "current_index": 2},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["batch"]["confirmed"] is False
    assert data["batch"]["failed_ids"] == [1]
    assert data["board"]["diverged"]["lists"] == [1]
    assert [board_list["title"] for board_list in data["board"]["lists"]] == ["Doing", "Done", "Backlog"]


@pytest.mark.asyncio
async def test_delete_list(client: AsyncClient, seeded):
    resp = await client.delete("/api/v1/projects/1/board/lists/1")
    assert resp.status_code == 200

    board = (await client.get("/api/v1/projects/1/board")).json()
    assert [board_list["id"] for board_list in board["lists"]] == [2, 3]


@pytest.mark.asyncio
async def test_delete_card(client: AsyncClient, seeded):
    resp = await client.delete("/api/v1/projects/1/board/cards/5")
    assert resp.status_code == 200
    resp = await client.delete("/api/v1/projects/1/board/cards/5")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_refresh_picks_up_remote_changes(client: AsyncClient, seeded):
    await client.get("/api/v1/projects/1/board")
    seeded.seed("lists", title="Blocked", project_id=1, position=3)

    stale = (await client.get("/api/v1/projects/1/board")).json()
    assert len(stale["lists"]) == 3
    fresh = (await client.get("/api/v1/projects/1/board?refresh=true")).json()
    assert [board_list["title"] for board_list in fresh["lists"]][-1] == "Blocked"
