"""Shared test helpers: builders for events, blocks and operations."""

from typing import Any
from uuid import uuid4

from ledgerstate.errors import NotFoundError, NotFoundReason
from ledgerstate.models import Block, Event, EventMeta, Operation

LEDGER_ID = "did:v1:test-ledger"


def make_event_hash() -> str:
    return f"ni:///sha-256;{uuid4().hex}"


def make_create_event(
    *inputs: dict[str, Any],
    event_hash: str | None = None,
    consensus: bool = True,
    block_height: int | None = None,
    block_order: int | None = None,
) -> Event:
    """A "Create" event carrying the given input bodies."""
    return Event(
        event_hash=event_hash or make_event_hash(),
        operation_type="Create",
        input=list(inputs),
        consensus=consensus,
        block_height=block_height,
        block_order=block_order,
    )


def make_block(block_height: int, *events: Event | str) -> Block:
    return Block(block_height=block_height, events=list(events))


def make_operation(
    record_id: str,
    event_hash: str,
    operation_hash: str | None = None,
    event_order: int | None = 0,
    payload: dict[str, Any] | None = None,
    **overrides: Any,
) -> Operation:
    return Operation(
        record_id=record_id,
        event_hash=event_hash,
        operation_hash=operation_hash or f"op-{uuid4().hex}",
        event_order=event_order,
        payload=payload if payload is not None else {"record": record_id},
        **overrides,
    )


async def add_confirmed_event(
    event_store,
    block_height: int,
    block_order: int,
    consensus: bool = True,
) -> str:
    """Store an event placed at (block_height, block_order) and return its hash."""
    event = Event(
        event_hash=make_event_hash(),
        operation_type="Create",
        consensus=consensus,
        block_height=block_height,
        block_order=block_order,
    )
    await event_store.add(event)
    return event.event_hash


class InMemoryLedger:
    """Block source and event resolver held in dicts, for replay tests.

    Counts calls so tests can assert how much replay work was done, and can
    be told to fail at a given height.
    """

    def __init__(self, genesis_height: int = 0) -> None:
        self.genesis_height = genesis_height
        self.blocks: dict[int, Block] = {}
        self.events: dict[str, Event] = {}
        self.fetched_heights: list[int] = []
        self.fail_at: int | None = None

    def append(self, *events: Event | str) -> Block:
        height = max(self.blocks, default=self.genesis_height) + 1
        block = make_block(height, *events)
        self.blocks[height] = block
        return block

    def add_event(self, event: Event) -> str:
        self.events[event.event_hash] = event
        return event.event_hash

    async def latest_height(self) -> int:
        return max(self.blocks, default=self.genesis_height)

    async def get_by_height(self, block_height: int) -> Block:
        self.fetched_heights.append(block_height)
        if block_height == self.fail_at:
            raise ConnectionError(f"block store unavailable at {block_height}")
        if block_height not in self.blocks:
            raise NotFoundError(
                "missing block", NotFoundReason.BLOCK_NOT_FOUND, block_height=block_height
            )
        return self.blocks[block_height]

    async def resolve(self, event_hash: str) -> Event:
        if event_hash not in self.events:
            raise NotFoundError(
                "missing event", NotFoundReason.EVENT_NOT_FOUND, event_hash=event_hash
            )
        return self.events[event_hash]

    async def lookup(self, event_hashes: list[str]) -> dict[str, EventMeta]:
        return {
            h: EventMeta.model_validate(self.events[h].model_dump())
            for h in event_hashes
            if h in self.events
        }
