# reconciler.py — Position reconciliation for drag-and-drop reordering
"""
Turns a drop gesture into the new local ordering plus the remote position
updates needed to make the store agree with it.

Positions are renumbered densely (0..n-1) in every collection a gesture
touches; only the source side of a cross-list move is left alone, so gaps
can appear there. Gaps are harmless: positions only need to induce an order.

The pure functions here do no I/O. ``dispatch_intents`` fans a batch out
through a caller-supplied update coroutine and joins on the results.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

from logging_system import get_logger
from models import BatchResult, IntentOutcome, Table, UpdateIntent, utcnow

T = TypeVar("T", bound=BaseModel)


@dataclass
class Reordered(Generic[T]):
    sequence: List[T]
    intents: List[UpdateIntent] = field(default_factory=list)


@dataclass
class Transferred(Generic[T]):
    source: List[T]
    destination: List[T]
    intents: List[UpdateIntent] = field(default_factory=list)


def _check_index(name: str, index: int, upper: int) -> None:
    if not 0 <= index < upper:
        raise IndexError(f"{name} {index} out of range for {upper} slot(s)")


def reorder_within_collection(sequence: Sequence[T], from_index: int, to_index: int) -> Reordered[T]:
    """Move one element inside a collection and renumber positions densely.

    An intent is emitted for every element whose stored position differs
    from its new index; the returned elements already carry the new value.
    """
    _check_index("from_index", from_index, len(sequence))
    _check_index("to_index", to_index, len(sequence))
    if from_index == to_index:
        return Reordered(list(sequence))

    items = list(sequence)
    items.insert(to_index, items.pop(from_index))

    result: List[T] = []
    intents: List[UpdateIntent] = []
    for index, item in enumerate(items):
        if item.position != index:
            intents.append(UpdateIntent(entity_id=item.id, position=index))
            item = item.model_copy(update={"position": index})
        result.append(item)
    return Reordered(result, intents)


def move_between_collections(
    source: Sequence[T],
    destination: Sequence[T],
    from_index: int,
    to_index: int,
    new_parent_id: int,
    parent_field: str = "list_id",
) -> Transferred[T]:
    """Transfer one element to another collection at ``to_index``.

    The moved element gets a parent+position intent; every other element of
    the destination is renumbered to its index there. The source keeps its
    stored positions.
    """
    _check_index("from_index", from_index, len(source))
    _check_index("to_index", to_index, len(destination) + 1)

    remaining = list(source)
    moved = remaining.pop(from_index)
    moved = moved.model_copy(update={parent_field: new_parent_id, "position": to_index})

    items = list(destination)
    items.insert(to_index, moved)

    intents = [UpdateIntent(entity_id=moved.id, position=to_index, parent_id=new_parent_id)]
    result: List[T] = []
    for index, item in enumerate(items):
        if item is not moved:
            intents.append(UpdateIntent(entity_id=item.id, position=index))
            item = item.model_copy(update={"position": index})
        result.append(item)
    return Transferred(remaining, result, intents)


def reorder_lists(project_lists: Sequence[T], from_index: int, to_index: int) -> Reordered[T]:
    """Lists never change project, so only the within-collection case exists."""
    return reorder_within_collection(project_lists, from_index, to_index)


async def dispatch_intents(
    table: Table,
    intents: List[UpdateIntent],
    send: Callable[[UpdateIntent], Awaitable[Optional[BaseModel]]],
) -> BatchResult:
    """Issue one update per intent concurrently and wait for all of them.

    ``send`` returns the stored record or None on failure; a failed intent
    never stops its siblings.
    """
    batch = BatchResult(table=table)
    if not intents:
        batch.finished_at = utcnow()
        return batch

    start = time.perf_counter()
    records = await asyncio.gather(*(send(intent) for intent in intents))
    batch.outcomes = [IntentOutcome(intent, record) for intent, record in zip(intents, records)]
    batch.finished_at = utcnow()

    get_logger().reconcile(
        table.value,
        len(intents),
        batch.failed_ids,
        duration_ms=(time.perf_counter() - start) * 1000,
    )
    return batch
