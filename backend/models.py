# models.py — Board records mirrored from the hosted store
# - Integer primary keys assigned by the store
# - Lists belong to a project, cards belong to a list (parent id + position)
# - Card completion flag is derived from status (done <=> completed)

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field


def utcnow():
    return datetime.now(timezone.utc)


# ============================================================
# ENUMS
# ============================================================

class CardStatus(str, PyEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"

    @property
    def is_completed(self) -> bool:
        return self is CardStatus.DONE


class Table(str, PyEnum):
    PROJECTS = "projects"
    LISTS = "lists"
    CARDS = "cards"


STATUS_COLORS: Dict[CardStatus, str] = {
    CardStatus.TODO: "#6c757d",
    CardStatus.IN_PROGRESS: "#007bff",
    CardStatus.REVIEW: "#ffc107",
    CardStatus.DONE: "#28a745",
}

STATUS_TEXTS: Dict[CardStatus, str] = {
    CardStatus.TODO: "todo",
    CardStatus.IN_PROGRESS: "in progress",
    CardStatus.REVIEW: "review",
    CardStatus.DONE: "done",
}


# ============================================================
# RECORDS (authoritative rows returned by the store)
# ============================================================

class Project(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class BoardList(BaseModel):
    id: int
    title: str
    project_id: int
    position: int = Field(0, ge=0)
    created_at: Optional[datetime] = None


class Card(BaseModel):
    id: int
    list_id: int
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    position: int = Field(0, ge=0)
    is_completed: bool = False
    status: CardStatus = CardStatus.TODO
    created_at: Optional[datetime] = None


class ListSearchResult(BoardList):
    project_title: Optional[str] = None


# ============================================================
# WRITE PAYLOADS
# ============================================================

class ListUpdate(BaseModel):
    title: Optional[str] = None
    position: Optional[int] = Field(None, ge=0)


class CardUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    list_id: Optional[int] = None
    position: Optional[int] = Field(None, ge=0)
    is_completed: Optional[bool] = None
    status: Optional[CardStatus] = None

    def to_fields(self) -> Dict[str, Any]:
        """Fields to send, with the completion flag kept in step with status."""
        fields = self.model_dump(exclude_unset=True, mode="json")
        if self.status is not None:
            fields["is_completed"] = self.status.is_completed
        elif self.is_completed is not None:
            fields["status"] = (CardStatus.DONE if self.is_completed else CardStatus.TODO).value
        return fields


# ============================================================
# RECONCILIATION
# ============================================================

@dataclass(frozen=True)
class UpdateIntent:
    """One pending remote update: absolute position, optionally a new parent."""
    entity_id: int
    position: int
    parent_id: Optional[int] = None

    def fields(self, parent_field: str) -> Dict[str, Any]:
        values: Dict[str, Any] = {"position": self.position}
        if self.parent_id is not None:
            values[parent_field] = self.parent_id
        return values


@dataclass
class IntentOutcome:
    intent: UpdateIntent
    record: Optional[BaseModel] = None

    @property
    def succeeded(self) -> bool:
        return self.record is not None


@dataclass
class BatchResult:
    """Joined outcome of one fanned-out batch of position updates."""
    table: Table
    outcomes: list = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def confirmed(self) -> bool:
        return all(o.succeeded for o in self.outcomes)

    @property
    def failed_ids(self) -> list:
        return [o.intent.entity_id for o in self.outcomes if not o.succeeded]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table.value,
            "intents": [
                {
                    "id": o.intent.entity_id,
                    "position": o.intent.position,
                    "parent_id": o.intent.parent_id,
                    "ok": o.succeeded,
                }
                for o in self.outcomes
            ],
            "confirmed": self.confirmed,
            "failed_ids": self.failed_ids,
        }
