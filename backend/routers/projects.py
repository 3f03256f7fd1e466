# routers/projects.py — Project catalogue and list search
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from board_state import BoardState
from dashboard import forget_dashboard
from gateway import SyncGateway
from remote_store import RemoteStore, get_store

router = APIRouter(prefix="/api/v1/projects", tags=["Projects"])


class ProjectCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = None


def _gateway(store: RemoteStore = Depends(get_store)) -> SyncGateway:
    # catalogue calls are not bound to an open board
    return SyncGateway(store, BoardState())


@router.get("")
async def list_projects(gateway: SyncGateway = Depends(_gateway)):
    """All projects, newest first"""
    return [p.model_dump(mode="json") for p in await gateway.list_projects()]


@router.post("", status_code=201)
async def create_project(data: ProjectCreate, gateway: SyncGateway = Depends(_gateway)):
    if not data.title.strip():
        raise HTTPException(status_code=422, detail="Project title must not be blank")
    project = await gateway.create_project(data.title, data.description)
    if project is None:
        raise HTTPException(status_code=502, detail="Remote store did not accept project creation")
    return project.model_dump(mode="json")


@router.delete("/{project_id}")
async def delete_project(project_id: int, gateway: SyncGateway = Depends(_gateway)):
    if not await gateway.delete_project(project_id):
        raise HTTPException(status_code=502, detail="Remote store did not accept project deletion")
    forget_dashboard(project_id)
    return {"status": "deleted", "project_id": project_id}


@router.get("/search/lists")
async def search_lists(
    q: str = Query("", max_length=200, description="Substring of the list title"),
    gateway: SyncGateway = Depends(_gateway),
):
    """Lists whose title contains ``q`` (case-insensitive), with their project title"""
    results = await gateway.search_lists(q)
    return {"results": [r.model_dump(mode="json") for r in results], "count": len(results)}
