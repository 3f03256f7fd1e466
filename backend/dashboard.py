# dashboard.py — Board controller driven by the presentation layer
import asyncio
from datetime import date
from typing import Dict, List, Optional, Union

from board_state import BoardState
from gateway import SyncGateway
from logging_system import get_logger
from models import (
    STATUS_COLORS, STATUS_TEXTS, BatchResult, BoardList, Card, CardStatus,
    CardUpdate, ListUpdate, Table,
)
from reconciler import dispatch_intents, move_between_collections, reorder_lists, reorder_within_collection
from remote_store import RemoteStore


class Dashboard:
    """One open project: its state plus the operations that mutate it.

    All state changes go through the reconciler or the gateway; callers read
    ``state`` but never write it.
    """

    def __init__(self, gateway: SyncGateway):
        self.gateway = gateway
        self.state: BoardState = gateway.state
        self.log = get_logger()

    @classmethod
    def for_project(cls, store: RemoteStore, project_id: int) -> "Dashboard":
        return cls(SyncGateway(store, BoardState(project_id)))

    @property
    def project_id(self) -> int:
        return self.state.project_id

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------

    async def open_project(self) -> BoardState:
        """Project details and lists in parallel, then every list's cards in parallel."""
        _, lists = await asyncio.gather(
            self.gateway.load_project_details(self.project_id),
            self.gateway.load_lists(self.project_id),
        )
        await asyncio.gather(*(self.gateway.load_cards(board_list.id) for board_list in lists))
        return self.state

    # ------------------------------------------------------------------
    # lists
    # ------------------------------------------------------------------

    async def add_list(self, title: str) -> Optional[BoardList]:
        title = (title or "").strip()
        if not title:
            return None
        return await self.gateway.create_list(title, self.project_id)

    async def rename_list(self, list_id: int, title: str) -> Optional[BoardList]:
        self._require_list(list_id)
        title = (title or "").strip()
        if not title:
            return None
        return await self.gateway.update_list(list_id, ListUpdate(title=title))

    async def delete_list(self, list_id: int) -> bool:
        self._require_list(list_id)
        return await self.gateway.delete_list(list_id)

    async def on_list_drop(self, previous_index: int, current_index: int) -> BatchResult:
        reordered = reorder_lists(self.state.lists, previous_index, current_index)
        if not reordered.intents:
            return BatchResult(table=Table.LISTS)
        self.state.lists = reordered.sequence
        return await self._confirm(Table.LISTS, reordered.intents, self.gateway.update_list_position)

    # ------------------------------------------------------------------
    # cards
    # ------------------------------------------------------------------

    async def add_card(
        self,
        list_id: int,
        title: str,
        description: Optional[str] = None,
        due_date: Union[date, str, None] = None,
    ) -> Optional[Card]:
        self._require_list(list_id)
        title = (title or "").strip()
        if not title:
            return None
        if isinstance(due_date, date):
            due_date = due_date.isoformat()
        return await self.gateway.create_card(list_id, title, description, due_date)

    async def edit_card(self, card_id: int, updates: CardUpdate) -> Optional[Card]:
        self._require_card(card_id)
        return await self.gateway.update_card(card_id, updates)

    async def delete_card(self, card_id: int) -> bool:
        card = self._require_card(card_id)
        return await self.gateway.delete_card(card.id, card.list_id)

    async def update_card_status(self, card_id: int, status: Union[CardStatus, str]) -> Optional[Card]:
        self._require_card(card_id)
        status = CardStatus(status)
        return await self.gateway.update_card(
            card_id, CardUpdate(status=status, is_completed=status.is_completed),
        )

    async def on_card_drop(
        self,
        source_list_id: int,
        dest_list_id: int,
        previous_index: int,
        current_index: int,
    ) -> BatchResult:
        self._require_list(source_list_id)
        self._require_list(dest_list_id)

        if source_list_id == dest_list_id:
            reordered = reorder_within_collection(
                self.state.cards_for(source_list_id), previous_index, current_index,
            )
            if not reordered.intents:
                return BatchResult(table=Table.CARDS)
            self.state.cards[source_list_id] = reordered.sequence
            intents = reordered.intents
        else:
            moved = move_between_collections(
                self.state.cards_for(source_list_id),
                self.state.cards_for(dest_list_id),
                previous_index,
                current_index,
                new_parent_id=dest_list_id,
            )
            self.state.cards[source_list_id] = moved.source
            self.state.cards[dest_list_id] = moved.destination
            intents = moved.intents

        return await self._confirm(Table.CARDS, intents, self.gateway.update_card_position)

    # ------------------------------------------------------------------
    # presentation helpers
    # ------------------------------------------------------------------

    def card_count(self, list_id: int) -> int:
        return self.state.card_count(list_id)

    @staticmethod
    def status_color(status: Union[CardStatus, str]) -> str:
        return STATUS_COLORS[CardStatus(status)]

    @staticmethod
    def status_text(status: Union[CardStatus, str]) -> str:
        return STATUS_TEXTS[CardStatus(status)]

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    async def _confirm(self, table: Table, intents, send) -> BatchResult:
        # local state is already moved; failures are remembered until the next reload
        batch = await dispatch_intents(table, intents, send)
        if not batch.confirmed:
            self.state.mark_diverged(table, batch.failed_ids)
        return batch

    def _require_list(self, list_id: int) -> BoardList:
        board_list = self.state.get_list(list_id)
        if board_list is None:
            raise KeyError(f"List {list_id} is not on board {self.project_id}")
        return board_list

    def _require_card(self, card_id: int) -> Card:
        card = self.state.find_card(card_id)
        if card is None:
            raise KeyError(f"Card {card_id} is not on board {self.project_id}")
        return card


# Open boards, one per project, and the load each one has in flight
_dashboards: Dict[int, Dashboard] = {}
_loading: Dict[int, "asyncio.Task[BoardState]"] = {}


def _load(dashboard: Dashboard) -> "asyncio.Task[BoardState]":
    """Start a load of the board, or join the one already running."""
    project_id = dashboard.project_id
    task = _loading.get(project_id)
    if task is None:
        task = asyncio.ensure_future(dashboard.open_project())
        _loading[project_id] = task

        def _done(finished):
            if _loading.get(project_id) is finished:
                del _loading[project_id]

        task.add_done_callback(_done)
    return task


async def get_dashboard(store: RemoteStore, project_id: int, refresh: bool = False) -> Dashboard:
    """Return the open board for a project once it has finished loading.

    Concurrent callers share a single load; a refresh requested while a
    load is running joins that load.
    """
    dashboard = _dashboards.get(project_id)
    if dashboard is None:
        dashboard = Dashboard.for_project(store, project_id)
        _dashboards[project_id] = dashboard
        refresh = True
    if refresh or project_id in _loading:
        await asyncio.shield(_load(dashboard))
    return dashboard


def forget_dashboard(project_id: int) -> None:
    _dashboards.pop(project_id, None)
    _loading.pop(project_id, None)


def open_dashboards() -> List[int]:
    return sorted(_dashboards)


def reset_dashboards() -> None:
    _dashboards.clear()
    _loading.clear()
