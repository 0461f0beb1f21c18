"""SQLite-backed block store implementing BlockSource."""

import logging
from datetime import UTC, datetime

from ledgerstate.db.connection import Database
from ledgerstate.errors import NotFoundError, NotFoundReason
from ledgerstate.models import Block

logger = logging.getLogger(__name__)


class BlockStorage:
    """Append-only block storage for one ledger."""

    def __init__(self, db: Database, ledger_id: str, genesis_height: int = 0) -> None:
        self._db = db
        self.ledger_id = ledger_id
        self.genesis_height = genesis_height

    async def add(self, block: Block) -> None:
        """Store a block. Raises IntegrityError if the height is already taken."""
        await self._db.execute(
            """
            INSERT INTO blocks (ledger_id, block_height, block, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                self.ledger_id,
                block.block_height,
                block.model_dump_json(),
                datetime.now(UTC).isoformat(),
            ),
        )
        logger.debug("stored block %s/%d", self.ledger_id, block.block_height)

    async def latest_height(self) -> int:
        """Height of the newest stored block, or the genesis height if none."""
        row = await self._db.fetchone(
            "SELECT MAX(block_height) AS height FROM blocks WHERE ledger_id = ?",
            (self.ledger_id,),
        )
        if row is None or row["height"] is None:
            return self.genesis_height
        return row["height"]

    async def get_by_height(self, block_height: int) -> Block:
        row = await self._db.fetchone(
            "SELECT block FROM blocks WHERE ledger_id = ? AND block_height = ?",
            (self.ledger_id, block_height),
        )
        if row is None:
            raise NotFoundError(
                "A block with the given height does not exist.",
                NotFoundReason.BLOCK_NOT_FOUND,
                ledger_id=self.ledger_id,
                block_height=block_height,
            )
        return Block.model_validate_json(row["block"])
