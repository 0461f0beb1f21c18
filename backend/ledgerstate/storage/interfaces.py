"""Interfaces of the upstream stores consumed by this package.

Block and event persistence live outside the core. The state machine and
the operation store only need the narrow capabilities below, so tests (or
another backend) can substitute any object with matching methods.
"""

from typing import Protocol, runtime_checkable

from ledgerstate.models import Block, Event, EventMeta


@runtime_checkable
class BlockSource(Protocol):
    async def latest_height(self) -> int:
        """Height of the newest block on the ledger."""
        ...

    async def get_by_height(self, block_height: int) -> Block:
        """Return the block at `block_height`. Raises NotFoundError if absent."""
        ...


@runtime_checkable
class EventResolver(Protocol):
    async def resolve(self, event_hash: str) -> Event:
        """Return the full event for a hash. Raises NotFoundError if absent."""
        ...


@runtime_checkable
class EventLookup(Protocol):
    async def lookup(self, event_hashes: list[str]) -> dict[str, EventMeta]:
        """Return consensus placement for each known hash. Unknown hashes are omitted."""
        ...
