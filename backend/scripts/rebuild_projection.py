"""
One-shot maintenance: rebuild a ledger's state machine from genesis.

Drops every projected object and the watermark for the configured ledger,
then replays all blocks. Safe to rerun; replay is idempotent.

Usage (the ledgerstate package must be importable):
    pip install -e .          # from the repository root, once
    python backend/scripts/rebuild_projection.py

or, without installing:
    cd backend
    PYTHONPATH=. python scripts/rebuild_projection.py
"""

import asyncio
import sys
from pathlib import Path

from ledgerstate.config import Settings, configure_logging
from ledgerstate.db.connection import Database
from ledgerstate.state.machine import StateMachineStorage
from ledgerstate.storage.blocks import BlockStorage
from ledgerstate.storage.events import EventStorage


async def rebuild(settings: Settings) -> None:
    db = await Database.connect(settings.db_path)
    try:
        blocks = BlockStorage(db, settings.ledger_id, settings.genesis_height)
        events = EventStorage(db, settings.ledger_id)
        machine = StateMachineStorage(
            db, settings.ledger_id, blocks, events, settings.genesis_height
        )

        removed = await machine.reset()
        print(f"Removed {removed} projected object(s) from {settings.ledger_id}.")

        replayed = await machine.catch_up()
        print(f"Done. Replayed {replayed} block(s); watermark {await machine.watermark()}.")
    finally:
        await db.close()


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    if settings.db_path != ":memory:" and not Path(settings.db_path).exists():
        print(f"Database not found at {settings.db_path}")
        sys.exit(1)
    print(f"Database: {settings.db_path}")
    asyncio.run(rebuild(settings))
