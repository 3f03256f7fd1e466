# gateway.py — Remote sync gateway: store writes/reads mirrored into BoardState
"""
Each public coroutine maps to one logical remote operation. Failures are
absorbed here: they are logged to the diagnostic channel and surface to the
caller only as ``None`` / ``[]`` / ``False``. Local state is touched only
after the store has accepted the call.
"""
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from board_state import BoardState
from errors import RemoteReadError, RemoteStoreError, RemoteWriteError
from logging_system import get_logger
from models import (
    BoardList, Card, CardStatus, CardUpdate, ListSearchResult, ListUpdate,
    Project, Table, UpdateIntent,
)
from remote_store import RemoteStore

M = TypeVar("M", bound=BaseModel)


def _parse(model: Type[M], row: Dict[str, Any], table: Table, operation: str, write: bool) -> M:
    try:
        return model.model_validate(row)
    except ValidationError as e:
        error_cls = RemoteWriteError if write else RemoteReadError
        raise error_cls(
            f"{operation} on {table.value} returned an unexpected record: {e.error_count()} error(s)",
            code="BS-WRITE-002" if write else "BS-READ-002",
            table=table.value,
            operation=operation,
        ) from e


class SyncGateway:
    """Remote CRUD for projects, lists and cards bound to one BoardState."""

    def __init__(self, store: RemoteStore, state: BoardState):
        self.store = store
        self.state = state
        self.log = get_logger()

    def _failed(self, message: str, error: RemoteStoreError, write: bool, **metadata) -> None:
        self.log.remote_failure(message, error, write=write, metadata=metadata)

    async def _next_position(self, table: Table, parent_field: str, parent_id: int) -> int:
        """max(position) + 1 among siblings, or 0 when there are none."""
        rows = await self.store.select(
            table, {parent_field: parent_id},
            columns="position", order="position", descending=True, limit=1,
        )
        return rows[0]["position"] + 1 if rows else 0

    # ============================================================
    # PROJECTS
    # ============================================================

    async def load_project_details(self, project_id: int) -> Optional[Project]:
        try:
            rows = await self.store.select(Table.PROJECTS, {"id": project_id}, limit=1)
            project = _parse(Project, rows[0], Table.PROJECTS, "select", write=False) if rows else None
        except RemoteStoreError as e:
            self._failed(f"Loading project {project_id} failed", e, write=False, project_id=project_id)
            return None
        if project is not None and project.id == self.state.project_id:
            self.state.project = project
        return project

    async def list_projects(self) -> List[Project]:
        try:
            rows = await self.store.select(Table.PROJECTS, order="created_at", descending=True)
            return [_parse(Project, r, Table.PROJECTS, "select", write=False) for r in rows]
        except RemoteStoreError as e:
            self._failed("Loading projects failed", e, write=False)
            return []

    async def create_project(self, title: str, description: Optional[str] = None) -> Optional[Project]:
        title = (title or "").strip()
        if not title:
            return None
        row = {"title": title, "description": (description or "").strip() or None}
        try:
            created = await self.store.insert_one(Table.PROJECTS, row)
            project = _parse(Project, created, Table.PROJECTS, "insert", write=True)
        except RemoteStoreError as e:
            self._failed(f"Creating project '{title}' failed", e, write=True)
            return None
        self.log.user_action("created", f"project:{project.id}")
        return project

    async def delete_project(self, project_id: int) -> bool:
        try:
            await self.store.delete_by_id(Table.PROJECTS, project_id)
        except RemoteStoreError as e:
            self._failed(f"Deleting project {project_id} failed", e, write=True, project_id=project_id)
            return False
        if project_id == self.state.project_id:
            self.state.project = None
            self.state.set_lists([])
            self.state.cards.clear()
        self.log.user_action("deleted", f"project:{project_id}")
        return True

    async def search_lists(self, query: str) -> List[ListSearchResult]:
        """Case-insensitive title search across all projects, newest first."""
        query = (query or "").strip()
        if not query:
            return []
        try:
            rows = await self.store.select(
                Table.LISTS, {"title": ("ilike", f"%{query}%")},
                order="created_at", descending=True,
            )
            results = [_parse(ListSearchResult, r, Table.LISTS, "select", write=False) for r in rows]
            project_ids = sorted({r.project_id for r in results})
            titles: Dict[int, str] = {}
            if project_ids:
                projects = await self.store.select(
                    Table.PROJECTS, {"id": ("in", project_ids)}, columns="id,title",
                )
                titles = {p["id"]: p["title"] for p in projects}
        except RemoteStoreError as e:
            self._failed(f"Searching lists for '{query}' failed", e, write=False)
            return []
        return [r.model_copy(update={"project_title": titles.get(r.project_id)}) for r in results]

    # ============================================================
    # LISTS
    # ============================================================

    async def load_lists(self, project_id: int) -> List[BoardList]:
        try:
            rows = await self.store.select(Table.LISTS, {"project_id": project_id}, order="position")
            lists = [_parse(BoardList, r, Table.LISTS, "select", write=False) for r in rows]
        except RemoteStoreError as e:
            self._failed(f"Loading lists of project {project_id} failed", e, write=False, project_id=project_id)
            return []
        if project_id == self.state.project_id:
            self.state.set_lists(lists)
        return lists

    async def create_list(self, title: str, project_id: int) -> Optional[BoardList]:
        try:
            position = await self._next_position(Table.LISTS, "project_id", project_id)
            row = await self.store.insert_one(
                Table.LISTS, {"title": title, "position": position, "project_id": project_id},
            )
            board_list = _parse(BoardList, row, Table.LISTS, "insert", write=True)
        except RemoteStoreError as e:
            self._failed(f"Creating list '{title}' failed", e, write=True, project_id=project_id)
            return None
        if board_list.project_id == self.state.project_id:
            self.state.append_list(board_list)
        self.log.user_action("created", f"list:{board_list.id}", metadata={"position": position})
        return board_list

    async def update_list(self, list_id: int, updates: Union[ListUpdate, Dict[str, Any]]) -> Optional[BoardList]:
        if isinstance(updates, dict):
            updates = ListUpdate.model_validate(updates)
        fields = updates.model_dump(exclude_unset=True)
        if not fields:
            return None
        try:
            row = await self.store.update_by_id(Table.LISTS, list_id, fields)
            board_list = _parse(BoardList, row, Table.LISTS, "update", write=True)
        except RemoteStoreError as e:
            self._failed(f"Updating list {list_id} failed", e, write=True, list_id=list_id, fields=fields)
            return None
        self.state.replace_list(board_list)
        return board_list

    async def delete_list(self, list_id: int) -> bool:
        """Delete the list's cards, then the list itself."""
        try:
            await self.store.delete_where(Table.CARDS, {"list_id": list_id})
        except RemoteStoreError as e:
            self._failed(f"Deleting cards of list {list_id} failed", e, write=True, list_id=list_id)
            return False
        if list_id in self.state.cards:
            self.state.set_cards(list_id, [])
        try:
            await self.store.delete_by_id(Table.LISTS, list_id)
        except RemoteStoreError as e:
            self._failed(f"Deleting list {list_id} failed", e, write=True, list_id=list_id)
            return False
        self.state.remove_list(list_id)
        self.log.user_action("deleted", f"list:{list_id}")
        return True

    async def update_list_position(self, intent: UpdateIntent) -> Optional[BoardList]:
        return await self.update_list(intent.entity_id, ListUpdate(position=intent.position))

    # ============================================================
    # CARDS
    # ============================================================

    async def load_cards(self, list_id: int) -> List[Card]:
        try:
            rows = await self.store.select(Table.CARDS, {"list_id": list_id}, order="position")
            cards = [_parse(Card, r, Table.CARDS, "select", write=False) for r in rows]
        except RemoteStoreError as e:
            self._failed(f"Loading cards of list {list_id} failed", e, write=False, list_id=list_id)
            return []
        self.state.set_cards(list_id, cards)
        return cards

    async def create_card(
        self,
        list_id: int,
        title: str,
        description: Optional[str] = None,
        due_date: Optional[str] = None,
    ) -> Optional[Card]:
        try:
            position = await self._next_position(Table.CARDS, "list_id", list_id)
            row = await self.store.insert_one(Table.CARDS, {
                "list_id": list_id,
                "title": title,
                "description": description,
                "due_date": due_date,
                "position": position,
                "is_completed": False,
                "status": CardStatus.TODO.value,
            })
            card = _parse(Card, row, Table.CARDS, "insert", write=True)
        except RemoteStoreError as e:
            self._failed(f"Creating card '{title}' failed", e, write=True, list_id=list_id)
            return None
        self.state.append_card(card)
        self.log.user_action("created", f"card:{card.id}", metadata={"list_id": list_id, "position": position})
        return card

    async def update_card(self, card_id: int, updates: Union[CardUpdate, Dict[str, Any]]) -> Optional[Card]:
        if isinstance(updates, dict):
            updates = CardUpdate.model_validate(updates)
        fields = updates.to_fields()
        if not fields:
            return None
        try:
            row = await self.store.update_by_id(Table.CARDS, card_id, fields)
            card = _parse(Card, row, Table.CARDS, "update", write=True)
        except RemoteStoreError as e:
            self._failed(f"Updating card {card_id} failed", e, write=True, card_id=card_id, fields=fields)
            return None
        self.state.replace_card(card)
        return card

    async def delete_card(self, card_id: int, list_id: int) -> bool:
        try:
            await self.store.delete_by_id(Table.CARDS, card_id)
        except RemoteStoreError as e:
            self._failed(f"Deleting card {card_id} failed", e, write=True, card_id=card_id)
            return False
        self.state.remove_card(card_id, list_id)
        self.log.user_action("deleted", f"card:{card_id}", metadata={"list_id": list_id})
        return True

    async def update_card_position(self, intent: UpdateIntent) -> Optional[Card]:
        return await self.update_card(intent.entity_id, intent.fields("list_id"))
