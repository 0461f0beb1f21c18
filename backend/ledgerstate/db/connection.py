"""Async SQLite connection wrapper with WAL mode and schema initialization."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite

from ledgerstate.db.schema import SCHEMA_SQL


class Transaction:
    """Statements issued inside `Database.transaction()`. Committed as one unit."""

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection

    async def execute(self, sql: str, params: tuple | None = None) -> aiosqlite.Cursor:
        return await self._conn.execute(sql, params or ())

    async def fetchone(self, sql: str, params: tuple | None = None) -> aiosqlite.Row | None:
        cursor = await self._conn.execute(sql, params or ())
        return await cursor.fetchone()


class Database:
    """Thin async wrapper around aiosqlite with WAL mode and auto-schema.

    A single connection is shared by every coroutine, so statements and
    transactions are serialized through one lock. A transaction holds the
    lock until it commits or rolls back.
    """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(cls, path: str = "ledgerstate.db") -> "Database":
        """Create a connection with WAL mode, busy timeout, and schema init."""
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA busy_timeout=5000")
        db = cls(conn)
        await db._ensure_schema()
        return db

    async def _ensure_schema(self) -> None:
        """Create tables if they don't exist. Idempotent."""
        async with self._lock:
            await self._conn.executescript(SCHEMA_SQL)
            await self._conn.commit()

    async def execute(self, sql: str, params: tuple | None = None) -> aiosqlite.Cursor:
        """Execute a single SQL statement and commit."""
        async with self._lock:
            cursor = await self._conn.execute(sql, params or ())
            await self._conn.commit()
            return cursor

    async def fetchone(self, sql: str, params: tuple | None = None) -> aiosqlite.Row | None:
        """Execute and return a single row."""
        async with self._lock:
            cursor = await self._conn.execute(sql, params or ())
            return await cursor.fetchone()

    async def fetchall(self, sql: str, params: tuple | None = None) -> list[aiosqlite.Row]:
        """Execute and return all rows."""
        async with self._lock:
            cursor = await self._conn.execute(sql, params or ())
            return list(await cursor.fetchall())

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Run several statements atomically. Rolls back if the block raises."""
        async with self._lock:
            try:
                yield Transaction(self._conn)
            except BaseException:
                await self._conn.rollback()
                raise
            await self._conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        await self._conn.close()
