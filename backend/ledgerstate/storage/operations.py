"""Operation storage: bulk insert, existence checks, and record history.

History is a join of two collections. Operations are stored here; their
consensus placement (block height and order) lives with the events, which
are resolved through an EventLookup so the event store can live elsewhere.
"""

import logging
import sqlite3

from ledgerstate.db.connection import Database
from ledgerstate.errors import (
    BadRequestError,
    DuplicateError,
    NotFoundError,
    NotFoundReason,
)
from ledgerstate.models import HistoryEntry, InsertResult, Operation
from ledgerstate.storage.interfaces import EventLookup
from ledgerstate.utils.json import dump_json, load_json_object

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATIONS = ("SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY")


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return exc.sqlite_errorname in _UNIQUE_VIOLATIONS


class OperationStorage:
    """Operations associated with the events of one ledger."""

    def __init__(self, db: Database, ledger_id: str, events: EventLookup) -> None:
        self._db = db
        self._events = events
        self.ledger_id = ledger_id

    async def add_many(
        self, operations: list[Operation], ignore_duplicate: bool = True
    ) -> InsertResult:
        """Insert operations without stopping at duplicates.

        A duplicate (same event hash and operation hash) never aborts the rest
        of the batch. With `ignore_duplicate` the call succeeds with the partial
        result; without it, DuplicateError is raised after the batch has been
        written. Any other failure rolls the batch back and propagates.
        """
        result = InsertResult()
        duplicates: list[tuple[str, str]] = []
        async with self._db.transaction() as tx:
            for op in operations:
                try:
                    await tx.execute(
                        """
                        INSERT INTO operations
                            (ledger_id, record_id, event_hash, operation_hash,
                             operation_type, payload, event_order, deleted)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            self.ledger_id,
                            op.record_id,
                            op.event_hash,
                            op.operation_hash,
                            op.operation_type,
                            dump_json(op.payload),
                            op.event_order,
                            int(op.deleted),
                        ),
                    )
                except sqlite3.IntegrityError as exc:
                    if not _is_unique_violation(exc):
                        raise
                    duplicates.append((op.event_hash, op.operation_hash))
                    continue
                result.inserted_count += 1

        result.duplicate_count = len(duplicates)
        if duplicates:
            if not ignore_duplicate:
                raise DuplicateError(duplicates)
            logger.warning(
                "ignored %d duplicate operation(s) in ledger %s",
                len(duplicates),
                self.ledger_id,
            )
        return result

    async def exists(self, event_hash: str, operation_hash: str | list[str]) -> bool:
        """True if every distinct hash has a live, ordered operation under the event."""
        hashes = [operation_hash] if isinstance(operation_hash, str) else operation_hash
        # Repeated hashes are fine; they only count once
        unique = list(dict.fromkeys(hashes))
        if not unique:
            raise BadRequestError(
                "At least one operation hash is required.", event_hash=event_hash
            )
        placeholders = ", ".join("?" for _ in unique)
        row = await self._db.fetchone(
            f"""
            SELECT COUNT(*) AS n FROM operations
            WHERE ledger_id = ? AND event_hash = ? AND deleted = 0
              AND event_order IS NOT NULL AND operation_hash IN ({placeholders})
            """,
            (self.ledger_id, event_hash, *unique),
        )
        return row is not None and row["n"] == len(unique)

    async def assign_event_order(self, event_hash: str, operation_hashes: list[str]) -> None:
        """Give the event's operations their position within the event, in list order.

        Operations that already have an order keep it.
        """
        async with self._db.transaction() as tx:
            for index, operation_hash in enumerate(operation_hashes):
                await tx.execute(
                    """
                    UPDATE operations SET event_order = ?
                    WHERE ledger_id = ? AND event_hash = ? AND operation_hash = ?
                      AND event_order IS NULL
                    """,
                    (index, self.ledger_id, event_hash, operation_hash),
                )

    async def mark_deleted(self, event_hash: str, operation_hashes: list[str]) -> int:
        """Set the deleted marker. Returns the number of operations marked."""
        if not operation_hashes:
            return 0
        placeholders = ", ".join("?" for _ in operation_hashes)
        cursor = await self._db.execute(
            f"""
            UPDATE operations SET deleted = 1
            WHERE ledger_id = ? AND event_hash = ? AND deleted = 0
              AND operation_hash IN ({placeholders})
            """,
            (self.ledger_id, event_hash, *operation_hashes),
        )
        return cursor.rowcount

    # TODO: accept a `since` position (block height, block order, event order)
    # so replay consumers can fetch only the tail of a record's history.
    async def get_record_history(
        self, record_id: str, max_block_height: int | None = None
    ) -> list[HistoryEntry]:
        """Operations on a record in consensus order.

        Only operations whose event has consensus count, optionally capped at
        `max_block_height`. The order is (block_height, block_order,
        event_order). Raises NotFoundError rather than returning an empty list.
        """
        if max_block_height is not None and (
            isinstance(max_block_height, bool)
            or not isinstance(max_block_height, int)
            or max_block_height <= 0
        ):
            raise BadRequestError(
                "max_block_height must be a positive integer.",
                max_block_height=max_block_height,
            )

        rows = await self._db.fetchall(
            """
            SELECT * FROM operations
            WHERE ledger_id = ? AND record_id = ?
            ORDER BY sequence_num
            """,
            (self.ledger_id, record_id),
        )
        operations = [self._row_to_operation(row) for row in rows]
        placements = await self._events.lookup([op.event_hash for op in operations])

        history: list[HistoryEntry] = []
        for op in operations:
            event = placements.get(op.event_hash)
            if event is None or not event.consensus or event.block_height is None:
                continue
            if max_block_height is not None and event.block_height > max_block_height:
                continue
            history.append(HistoryEntry(operation=op, event=event))
        history.sort(key=lambda entry: entry.sort_key)

        if not history:
            raise NotFoundError(
                "Failed to get history for the specified record.",
                NotFoundReason.NO_CONFIRMED_HISTORY
                if operations
                else NotFoundReason.UNKNOWN_RECORD,
                record_id=record_id,
                max_block_height=max_block_height,
            )
        return history

    @staticmethod
    def _row_to_operation(row) -> Operation:
        return Operation(
            record_id=row["record_id"],
            event_hash=row["event_hash"],
            operation_hash=row["operation_hash"],
            operation_type=row["operation_type"],
            payload=load_json_object(row["payload"]),
            event_order=row["event_order"],
            deleted=bool(row["deleted"]),
        )
