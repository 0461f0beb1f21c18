"""SQLite-backed event store implementing EventResolver and EventLookup."""

import logging
from datetime import UTC, datetime

from ledgerstate.db.connection import Database
from ledgerstate.errors import NotFoundError, NotFoundReason
from ledgerstate.models import Event, EventMeta

logger = logging.getLogger(__name__)


class EventStorage:
    """Event storage for one ledger, addressed by event hash."""

    def __init__(self, db: Database, ledger_id: str) -> None:
        self._db = db
        self.ledger_id = ledger_id

    async def add(self, event: Event) -> None:
        """Store an event. Raises IntegrityError if the hash is already stored."""
        await self._db.execute(
            """
            INSERT INTO events
                (ledger_id, event_hash, event, consensus, block_height, block_order,
                 created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                self.ledger_id,
                event.event_hash,
                event.model_dump_json(),
                int(event.consensus),
                event.block_height,
                event.block_order,
                datetime.now(UTC).isoformat(),
            ),
        )

    async def mark_consensus(
        self, event_hash: str, block_height: int, block_order: int
    ) -> None:
        """Record that an event reached consensus at a block position."""
        cursor = await self._db.execute(
            """
            UPDATE events SET consensus = 1, block_height = ?, block_order = ?
            WHERE ledger_id = ? AND event_hash = ?
            """,
            (block_height, block_order, self.ledger_id, event_hash),
        )
        if cursor.rowcount == 0:
            raise self._not_found(event_hash)
        logger.debug(
            "event %s reached consensus at %d/%d", event_hash, block_height, block_order
        )

    async def resolve(self, event_hash: str) -> Event:
        row = await self._db.fetchone(
            "SELECT * FROM events WHERE ledger_id = ? AND event_hash = ?",
            (self.ledger_id, event_hash),
        )
        if row is None:
            raise self._not_found(event_hash)
        return self._row_to_event(row)

    async def lookup(self, event_hashes: list[str]) -> dict[str, EventMeta]:
        hashes = list(dict.fromkeys(event_hashes))
        if not hashes:
            return {}
        placeholders = ", ".join("?" for _ in hashes)
        rows = await self._db.fetchall(
            f"""
            SELECT event_hash, consensus, block_height, block_order FROM events
            WHERE ledger_id = ? AND event_hash IN ({placeholders})
            """,
            (self.ledger_id, *hashes),
        )
        return {
            row["event_hash"]: EventMeta(
                event_hash=row["event_hash"],
                consensus=bool(row["consensus"]),
                block_height=row["block_height"],
                block_order=row["block_order"],
            )
            for row in rows
        }

    def _not_found(self, event_hash: str) -> NotFoundError:
        return NotFoundError(
            "An event with the given hash does not exist.",
            NotFoundReason.EVENT_NOT_FOUND,
            ledger_id=self.ledger_id,
            event_hash=event_hash,
        )

    @staticmethod
    def _row_to_event(row) -> Event:
        """Stored body plus the consensus columns, which may have changed since insert."""
        event = Event.model_validate_json(row["event"])
        return event.model_copy(
            update={
                "consensus": bool(row["consensus"]),
                "block_height": row["block_height"],
                "block_order": row["block_order"],
            }
        )
