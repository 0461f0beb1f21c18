"""Canonical data structures for ledger state.

Blocks and events are consumed read-only from upstream stores; operations
are written by this package; projected objects are the materialized output
of block replay.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

CREATE_OPERATION = "create"


# ---------------------------------------------------------------------------
# Ledger entities
# ---------------------------------------------------------------------------


class Operation(BaseModel):
    record_id: str
    event_hash: str
    operation_hash: str
    operation_type: str = CREATE_OPERATION
    payload: dict[str, Any] = Field(default_factory=dict)
    event_order: int | None = None  # None until the event's operations are ordered
    deleted: bool = False


class EventMeta(BaseModel):
    """The slice of an event needed to place its operations in history."""

    event_hash: str
    consensus: bool = False
    block_height: int | None = None
    block_order: int | None = None


class Event(EventMeta):
    operation_type: str | None = None
    input: list[dict[str, Any]] | None = None
    operation_hashes: list[str] = Field(default_factory=list)

    def is_create(self) -> bool:
        return (
            self.operation_type is not None
            and self.operation_type.lower() == CREATE_OPERATION
            and isinstance(self.input, list)
        )


class Block(BaseModel):
    block_height: int
    # Inline event bodies or event hashes to resolve through the event store
    events: list[Event | str] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    """An operation placed at its consensus position."""

    operation: Operation
    event: EventMeta

    @property
    def sort_key(self) -> tuple[int, int, bool, int]:
        # Operations not yet ordered within their event sort before ordered ones
        return (
            self.event.block_height or 0,
            self.event.block_order or 0,
            self.operation.event_order is not None,
            self.operation.event_order or 0,
        )


class InsertResult(BaseModel):
    inserted_count: int = 0
    duplicate_count: int = 0


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class ObjectMeta(BaseModel):
    block_height: int | None = None
    created: datetime | None = None
    updated: datetime | None = None
    deleted: bool = False


class ProjectedObject(BaseModel):
    id: str
    body: dict[str, Any]
    meta: ObjectMeta
