"""Database schema DDL. All tables use CREATE IF NOT EXISTS for idempotency.

Every table is scoped by ledger_id so several ledgers can share one file;
each storage object only ever touches the rows of its own ledger.
"""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS blocks (
    ledger_id TEXT NOT NULL,
    block_height INTEGER NOT NULL,
    block TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (ledger_id, block_height)
);

CREATE TABLE IF NOT EXISTS events (
    ledger_id TEXT NOT NULL,
    event_hash TEXT NOT NULL,
    event TEXT NOT NULL,
    consensus INTEGER NOT NULL DEFAULT 0,
    block_height INTEGER,
    block_order INTEGER,
    created_at TEXT NOT NULL,
    PRIMARY KEY (ledger_id, event_hash)
);

CREATE INDEX IF NOT EXISTS idx_events_block ON events(ledger_id, block_height, block_order);

CREATE TABLE IF NOT EXISTS operations (
    sequence_num INTEGER PRIMARY KEY AUTOINCREMENT,
    ledger_id TEXT NOT NULL,
    record_id TEXT NOT NULL,
    event_hash TEXT NOT NULL,
    operation_hash TEXT NOT NULL,
    operation_type TEXT NOT NULL,
    payload TEXT NOT NULL DEFAULT '{}',
    event_order INTEGER,
    deleted INTEGER NOT NULL DEFAULT 0,
    UNIQUE (ledger_id, event_hash, operation_hash)
);

CREATE INDEX IF NOT EXISTS idx_operations_record_id ON operations(ledger_id, record_id);

CREATE TABLE IF NOT EXISTS state_machine_objects (
    ledger_id TEXT NOT NULL,
    object_id TEXT NOT NULL,
    body TEXT NOT NULL,
    block_height INTEGER NOT NULL,
    created TEXT NOT NULL,
    updated TEXT NOT NULL,
    deleted INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (ledger_id, object_id)
);

CREATE TABLE IF NOT EXISTS state_machine_watermarks (
    ledger_id TEXT PRIMARY KEY,
    block_height INTEGER NOT NULL,
    updated TEXT NOT NULL
);
"""
