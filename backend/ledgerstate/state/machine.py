"""State machine: a key/value projection of ledger objects built by block replay.

Reads never see a stale projection. `get` first catches the projection up
to the ledger's latest block, then answers from the materialized table.
Replay walks heights in increasing order; each height's upserts and the
watermark bump commit together, so an aborted catch-up keeps every height
it finished and resumes from the next one.
"""

import logging
import weakref
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from ledgerstate.db.connection import Database, Transaction
from ledgerstate.errors import BadRequestError, NotFoundError, NotFoundReason
from ledgerstate.models import CREATE_OPERATION, Block, Event, ObjectMeta, ProjectedObject
from ledgerstate.state.singleflight import SingleFlight
from ledgerstate.storage.interfaces import BlockSource, EventResolver
from ledgerstate.utils.json import dump_json, load_json_object

logger = logging.getLogger(__name__)

# One replay gate per database: projections on different databases never share a replay
_GATES: "weakref.WeakKeyDictionary[Database, SingleFlight]" = weakref.WeakKeyDictionary()


def _gate_for(db: Database) -> SingleFlight:
    gate = _GATES.get(db)
    if gate is None:
        gate = _GATES[db] = SingleFlight()
    return gate


class StateMachineStorage:
    """Projected objects for one ledger, kept current by replaying blocks."""

    def __init__(
        self,
        db: Database,
        ledger_id: str,
        blocks: BlockSource,
        events: EventResolver,
        genesis_height: int = 0,
        replays: SingleFlight | None = None,
    ) -> None:
        self._db = db
        self._blocks = blocks
        self._events = events
        self._replays = replays if replays is not None else _gate_for(db)
        self.ledger_id = ledger_id
        self.genesis_height = genesis_height
        # Keyed by lowercased operation type; anything else leaves the projection alone
        self._handlers: dict[
            str, Callable[[Transaction, Event, int], Awaitable[None]]
        ] = {
            CREATE_OPERATION: self._handle_create,
        }

    # -- reads --

    async def get(self, object_id: str) -> ProjectedObject:
        """Return the latest projected state of an object, catching up first."""
        await self.catch_up()
        row = await self._db.fetchone(
            "SELECT * FROM state_machine_objects WHERE ledger_id = ? AND object_id = ?",
            (self.ledger_id, object_id),
        )
        if row is None:
            raise NotFoundError(
                "An object with the given ID does not exist.",
                NotFoundReason.OBJECT_NOT_FOUND,
                object_id=object_id,
            )
        if row["deleted"]:
            raise NotFoundError(
                "An object with the given ID does not exist.",
                NotFoundReason.OBJECT_DELETED,
                object_id=object_id,
            )
        return self._row_to_object(row)

    async def watermark(self) -> int:
        """Highest block height fully applied, or the genesis height."""
        row = await self._db.fetchone(
            "SELECT block_height FROM state_machine_watermarks WHERE ledger_id = ?",
            (self.ledger_id,),
        )
        return self.genesis_height if row is None else row["block_height"]

    # -- writes --

    async def update(
        self,
        obj: dict[str, Any],
        meta: ObjectMeta | dict[str, Any],
        tx: Transaction | None = None,
    ) -> ProjectedObject:
        """Create or replace the object keyed by `obj["id"]`.

        `meta.block_height` is required. `created` and `updated` default to
        now on first insert; later upserts keep the stored `created`.
        """
        if isinstance(meta, dict):
            meta = ObjectMeta.model_validate(meta)
        object_id = obj.get("id")
        if not object_id or not isinstance(object_id, str):
            raise BadRequestError(
                "An `id` for the given object was not specified.", object=obj
            )
        if meta.block_height is None:
            raise BadRequestError(
                "A `block_height` for the given object was not specified.",
                meta=meta.model_dump(mode="json"),
            )
        if tx is None:
            async with self._db.transaction() as tx:
                return await self._upsert(tx, object_id, obj, meta)
        return await self._upsert(tx, object_id, obj, meta)

    async def _upsert(
        self, tx: Transaction, object_id: str, obj: dict[str, Any], meta: ObjectMeta
    ) -> ProjectedObject:
        now = datetime.now(UTC)
        logger.debug("adding state machine object %s", object_id)
        await tx.execute(
            """
            INSERT INTO state_machine_objects
                (ledger_id, object_id, body, block_height, created, updated, deleted)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (ledger_id, object_id) DO UPDATE SET
                body = excluded.body,
                block_height = excluded.block_height,
                updated = excluded.updated,
                deleted = excluded.deleted
            """,
            (
                self.ledger_id,
                object_id,
                dump_json(obj),
                meta.block_height,
                (meta.created or now).isoformat(),
                (meta.updated or now).isoformat(),
                int(meta.deleted),
            ),
        )
        row = await tx.fetchone(
            "SELECT * FROM state_machine_objects WHERE ledger_id = ? AND object_id = ?",
            (self.ledger_id, object_id),
        )
        assert row is not None
        return self._row_to_object(row)

    async def reset(self) -> int:
        """Forget the projection so the next catch-up replays from genesis.

        Returns the number of objects removed.
        """
        async with self._db.transaction() as tx:
            cursor = await tx.execute(
                "DELETE FROM state_machine_objects WHERE ledger_id = ?",
                (self.ledger_id,),
            )
            await tx.execute(
                "DELETE FROM state_machine_watermarks WHERE ledger_id = ?",
                (self.ledger_id,),
            )
        logger.info("reset state machine for ledger %s", self.ledger_id)
        return cursor.rowcount

    # -- replay --

    async def catch_up(self) -> int:
        """Bring the projection up to the latest block.

        Returns how many heights this call replayed. A caller that joined
        another caller's replay runs once more afterwards, since blocks may
        have arrived after that replay read its target. If the joined replay
        failed, the caller logs it and tries on its own instead of failing.
        """
        joined = self._replays.in_flight(self.ledger_id)
        try:
            replayed, started = await self._replays.run(self.ledger_id, self._replay)
        except Exception:
            if not joined:
                raise
            logger.warning(
                "shared replay of ledger %s failed, retrying", self.ledger_id, exc_info=True
            )
        else:
            if started:
                return replayed
        replayed, started = await self._replays.run(self.ledger_id, self._replay)
        return replayed if started else 0

    async def _replay(self) -> int:
        watermark = await self.watermark()
        target = await self._blocks.latest_height()
        if target <= watermark:
            return 0

        logger.info(
            "replaying ledger %s blocks %d..%d", self.ledger_id, watermark + 1, target
        )
        for block_height in range(watermark + 1, target + 1):
            block = await self._blocks.get_by_height(block_height)
            await self._apply_block(block_height, block)
        logger.info("ledger %s state machine at block %d", self.ledger_id, target)
        return target - watermark

    async def _apply_block(self, block_height: int, block: Block) -> None:
        """Apply one block's events in order and advance the watermark atomically."""
        # Resolve before opening the transaction: the resolver may share the database
        events = [await self._resolve(ref) for ref in block.events]

        async with self._db.transaction() as tx:
            for event in events:
                handler = self._handlers.get((event.operation_type or "").lower())
                if handler is None:
                    logger.debug(
                        "skipping %s event %s at block %d",
                        event.operation_type,
                        event.event_hash,
                        block_height,
                    )
                    continue
                await handler(tx, event, block_height)
            await tx.execute(
                """
                INSERT INTO state_machine_watermarks (ledger_id, block_height, updated)
                VALUES (?, ?, ?)
                ON CONFLICT (ledger_id) DO UPDATE SET
                    block_height = MAX(block_height, excluded.block_height),
                    updated = excluded.updated
                """,
                (self.ledger_id, block_height, datetime.now(UTC).isoformat()),
            )

    async def _resolve(self, ref: Event | str) -> Event:
        if isinstance(ref, Event):
            return ref
        return await self._events.resolve(ref)

    async def _handle_create(self, tx: Transaction, event: Event, block_height: int) -> None:
        """Each input body becomes (or replaces) the object named by its `id`."""
        if not event.is_create():
            return
        for body in event.input:
            await self.update(body, ObjectMeta(block_height=block_height), tx=tx)

    @staticmethod
    def _row_to_object(row) -> ProjectedObject:
        return ProjectedObject(
            id=row["object_id"],
            body=load_json_object(row["body"]),
            meta=ObjectMeta(
                block_height=row["block_height"],
                created=row["created"],
                updated=row["updated"],
                deleted=bool(row["deleted"]),
            ),
        )
