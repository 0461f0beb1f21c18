"""ledgerstate FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ledgerstate.api.router import get_operation_storage, get_state_machine
from ledgerstate.api.router import router as ledger_router
from ledgerstate.config import Settings, configure_logging
from ledgerstate.db.connection import Database
from ledgerstate.state.machine import StateMachineStorage
from ledgerstate.storage.blocks import BlockStorage
from ledgerstate.storage.events import EventStorage
from ledgerstate.storage.operations import OperationStorage


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage database lifecycle and storage wiring."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    db = await Database.connect(settings.db_path)

    blocks = BlockStorage(db, settings.ledger_id, settings.genesis_height)
    events = EventStorage(db, settings.ledger_id)

    operations = OperationStorage(db, settings.ledger_id, events)
    app.dependency_overrides[get_operation_storage] = lambda: operations

    state_machine = StateMachineStorage(
        db, settings.ledger_id, blocks, events, settings.genesis_height
    )
    app.dependency_overrides[get_state_machine] = lambda: state_machine

    app.state.db = db
    app.state.settings = settings
    yield

    await db.close()


app = FastAPI(
    title="ledgerstate",
    description="Consensus-ordered record history and block-replay state projection",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(ledger_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}
