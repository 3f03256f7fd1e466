# board_state.py — Local board state for one open project
# Single writer: only the reconciler results and SyncGateway successes land here.
from typing import Dict, List, Optional, Set, Tuple, Any

from models import BoardList, Card, Project, Table


def _merge(old, record):
    # shallow merge of the authoritative record over the cached one
    return old.model_copy(update=record.model_dump(exclude_unset=True))


class BoardState:
    """Ordered lists of a project plus the per-list card cache."""

    def __init__(self, project_id: Optional[int] = None):
        self.project_id = project_id
        self.project: Optional[Project] = None
        self.lists: List[BoardList] = []
        self.cards: Dict[int, List[Card]] = {}
        # entities whose local position may not match the store
        self.diverged: Set[Tuple[str, int]] = set()

    # ------------------------------------------------------------------
    # lists
    # ------------------------------------------------------------------

    def set_lists(self, lists: List[BoardList]) -> None:
        self.lists = list(lists)
        self._clear_diverged(Table.LISTS, [board_list.id for board_list in self.lists])

    def append_list(self, board_list: BoardList) -> None:
        self.lists = [*self.lists, board_list]
        self.cards.setdefault(board_list.id, [])

    def replace_list(self, record: BoardList) -> bool:
        for i, existing in enumerate(self.lists):
            if existing.id == record.id:
                self.lists[i] = _merge(existing, record)
                return True
        return False

    def remove_list(self, list_id: int) -> None:
        self.lists = [board_list for board_list in self.lists if board_list.id != list_id]
        for card in self.cards.pop(list_id, []):
            self.diverged.discard((Table.CARDS.value, card.id))
        self.diverged.discard((Table.LISTS.value, list_id))

    def get_list(self, list_id: int) -> Optional[BoardList]:
        return next((board_list for board_list in self.lists if board_list.id == list_id), None)

    # ------------------------------------------------------------------
    # cards
    # ------------------------------------------------------------------

    def cards_for(self, list_id: int) -> List[Card]:
        return self.cards.get(list_id, [])

    def set_cards(self, list_id: int, cards: List[Card]) -> None:
        self.cards[list_id] = list(cards)
        self._clear_diverged(Table.CARDS, [c.id for c in cards])

    def append_card(self, card: Card) -> None:
        self.cards[card.list_id] = [*self.cards.get(card.list_id, []), card]

    def replace_card(self, record: Card) -> bool:
        """Swap in the stored record, moving it when its parent list changed."""
        for list_id, list_cards in self.cards.items():
            for i, existing in enumerate(list_cards):
                if existing.id != record.id:
                    continue
                merged = _merge(existing, record)
                if merged.list_id == list_id:
                    self.cards[list_id] = [*list_cards[:i], merged, *list_cards[i + 1:]]
                    return True
                self.cards[list_id] = [*list_cards[:i], *list_cards[i + 1:]]
                if merged.list_id in self.cards:
                    self._insert_by_position(merged)
                return True
        return False

    def _insert_by_position(self, card: Card) -> None:
        # after the last sibling whose position is not greater
        siblings = self.cards[card.list_id]
        index = next((i for i, c in enumerate(siblings) if c.position > card.position), len(siblings))
        self.cards[card.list_id] = [*siblings[:index], card, *siblings[index:]]

    def remove_card(self, card_id: int, list_id: int) -> None:
        self.cards[list_id] = [c for c in self.cards.get(list_id, []) if c.id != card_id]
        self.diverged.discard((Table.CARDS.value, card_id))

    def find_card(self, card_id: int) -> Optional[Card]:
        for list_cards in self.cards.values():
            for card in list_cards:
                if card.id == card_id:
                    return card
        return None

    def card_count(self, list_id: int) -> int:
        return len(self.cards.get(list_id, []))

    # ------------------------------------------------------------------
    # divergence bookkeeping
    # ------------------------------------------------------------------

    def mark_diverged(self, table: Table, ids: List[int]) -> None:
        self.diverged.update((table.value, i) for i in ids)

    def _clear_diverged(self, table: Table, ids: List[int]) -> None:
        for i in ids:
            self.diverged.discard((table.value, i))

    def diverged_ids(self, table: Table) -> List[int]:
        return sorted(i for t, i in self.diverged if t == table.value)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "project": self.project.model_dump(mode="json") if self.project else None,
            "lists": [
                {
                    **board_list.model_dump(mode="json"),
                    "card_count": self.card_count(board_list.id),
                    "cards": [c.model_dump(mode="json") for c in self.cards_for(board_list.id)],
                }
                for board_list in self.lists
            ],
            "diverged": {
                "lists": self.diverged_ids(Table.LISTS),
                "cards": self.diverged_ids(Table.CARDS),
            },
        }
