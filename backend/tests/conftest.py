"""Shared pytest fixtures for ledgerstate tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from ledgerstate.api.router import get_operation_storage, get_state_machine
from ledgerstate.db.connection import Database
from ledgerstate.main import app
from ledgerstate.state.machine import StateMachineStorage
from ledgerstate.state.singleflight import SingleFlight
from ledgerstate.storage.blocks import BlockStorage
from ledgerstate.storage.events import EventStorage
from ledgerstate.storage.operations import OperationStorage
from tests.fixtures import LEDGER_ID


@pytest.fixture
async def db():
    """In-memory database for tests."""
    database = await Database.connect(":memory:")
    yield database
    await database.close()


@pytest.fixture
async def block_store(db):
    """BlockStorage with genesis height 0 backed by in-memory database."""
    return BlockStorage(db, LEDGER_ID, genesis_height=0)


@pytest.fixture
async def event_store(db):
    """EventStorage backed by in-memory database."""
    return EventStorage(db, LEDGER_ID)


@pytest.fixture
async def operation_store(db, event_store):
    """OperationStorage joined against the in-memory event store."""
    return OperationStorage(db, LEDGER_ID, event_store)


@pytest.fixture
async def state_machine(db, block_store, event_store):
    """StateMachineStorage with its own replay gate, isolated from other tests."""
    return StateMachineStorage(
        db, LEDGER_ID, block_store, event_store, genesis_height=0, replays=SingleFlight()
    )


@pytest.fixture
async def client(operation_store, state_machine):
    """Async test client with in-memory stores wired into the app."""
    app.dependency_overrides[get_operation_storage] = lambda: operation_store
    app.dependency_overrides[get_state_machine] = lambda: state_machine
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
