# routers/board.py — Board of one project: lists, cards, drag-and-drop
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from dashboard import Dashboard, get_dashboard
from models import CardStatus, CardUpdate
from remote_store import RemoteStore, get_store

router = APIRouter(prefix="/api/v1/projects/{project_id}/board", tags=["Board"])


# ============================================================
# SCHEMAS
# ============================================================

class ListCreate(BaseModel):
    title: str = Field(..., max_length=200)


class ListRename(BaseModel):
    title: str = Field(..., max_length=200)


class CardCreate(BaseModel):
    title: str = Field(..., max_length=500)
    description: Optional[str] = None
    due_date: Optional[str] = None


class CardEdit(BaseModel):
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    due_date: Optional[str] = None


class StatusChange(BaseModel):
    status: CardStatus


class ListDrop(BaseModel):
    previous_index: int = Field(..., ge=0)
    current_index: int = Field(..., ge=0)


class CardDrop(BaseModel):
    source_list_id: int
    dest_list_id: int
    previous_index: int = Field(..., ge=0)
    current_index: int = Field(..., ge=0)


# ============================================================
# HELPERS
# ============================================================

async def _board(
    project_id: int,
    store: RemoteStore = Depends(get_store),
) -> Dashboard:
    return await get_dashboard(store, project_id)


def _written(record, operation: str):
    if record is None:
        raise HTTPException(status_code=502, detail=f"Remote store did not accept {operation}")
    return record.model_dump(mode="json")


# ============================================================
# BOARD
# ============================================================

@router.get("")
async def get_board(
    project_id: int,
    refresh: bool = Query(False, description="Reload lists and cards from the store"),
    store: RemoteStore = Depends(get_store),
):
    """Lists in position order, each with its cards"""
    dashboard = await get_dashboard(store, project_id, refresh=refresh)
    return dashboard.state.snapshot()


@router.get("/statuses")
async def get_statuses():
    """Card statuses with their display colour and label"""
    return [
        {"status": s.value, "color": Dashboard.status_color(s), "text": Dashboard.status_text(s)}
        for s in CardStatus
    ]


# ============================================================
# LISTS
# ============================================================

@router.post("/lists", status_code=201)
async def add_list(data: ListCreate, dashboard: Dashboard = Depends(_board)):
    if not data.title.strip():
        raise HTTPException(status_code=422, detail="List title must not be blank")
    return _written(await dashboard.add_list(data.title), "list creation")


@router.patch("/lists/{list_id}")
async def rename_list(list_id: int, data: ListRename, dashboard: Dashboard = Depends(_board)):
    if not data.title.strip():
        raise HTTPException(status_code=422, detail="List title must not be blank")
    try:
        record = await dashboard.rename_list(list_id, data.title)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    return _written(record, "list update")


@router.delete("/lists/{list_id}")
async def delete_list(list_id: int, dashboard: Dashboard = Depends(_board)):
    """Delete a list together with its cards"""
    try:
        ok = await dashboard.delete_list(list_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    if not ok:
        raise HTTPException(status_code=502, detail="Remote store did not accept list deletion")
    return {"status": "deleted", "list_id": list_id}


@router.post("/lists/drop")
async def drop_list(data: ListDrop, dashboard: Dashboard = Depends(_board)):
    """Reorder lists after a drag-and-drop gesture"""
    try:
        batch = await dashboard.on_list_drop(data.previous_index, data.current_index)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"batch": batch.to_dict(), "board": dashboard.state.snapshot()}


# ============================================================
# CARDS
# ============================================================

@router.post("/lists/{list_id}/cards", status_code=201)
async def add_card(list_id: int, data: CardCreate, dashboard: Dashboard = Depends(_board)):
    if not data.title.strip():
        raise HTTPException(status_code=422, detail="Card title must not be blank")
    try:
        record = await dashboard.add_card(list_id, data.title, data.description, data.due_date)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    return _written(record, "card creation")


@router.patch("/cards/{card_id}")
async def edit_card(card_id: int, data: CardEdit, dashboard: Dashboard = Depends(_board)):
    updates = CardUpdate(**data.model_dump(exclude_unset=True))
    if not updates.to_fields():
        raise HTTPException(status_code=422, detail="Nothing to update")
    try:
        record = await dashboard.edit_card(card_id, updates)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    return _written(record, "card update")


@router.post("/cards/{card_id}/status")
async def change_status(card_id: int, data: StatusChange, dashboard: Dashboard = Depends(_board)):
    try:
        record = await dashboard.update_card_status(card_id, data.status)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    return _written(record, "status change")


@router.delete("/cards/{card_id}")
async def delete_card(card_id: int, dashboard: Dashboard = Depends(_board)):
    try:
        ok = await dashboard.delete_card(card_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    if not ok:
        raise HTTPException(status_code=502, detail="Remote store did not accept card deletion")
    return {"status": "deleted", "card_id": card_id}


@router.post("/cards/drop")
async def drop_card(data: CardDrop, dashboard: Dashboard = Depends(_board)):
    """Reorder or transfer a card after a drag-and-drop gesture"""
    try:
        batch = await dashboard.on_card_drop(
            data.source_list_id, data.dest_list_id, data.previous_index, data.current_index,
        )
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"batch": batch.to_dict(), "board": dashboard.state.snapshot()}
