"""
SQLite connection, schema and transaction helpers.

One aiosqlite connection per Database, opened in autocommit mode; writes
that must be atomic go through transaction(). All access is serialized by
an asyncio.Lock so a reader never observes another task's open
transaction.
"""

import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Sequence

import aiosqlite

from steamshelf.exceptions import StoreError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS games (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    summary TEXT,
    release_date INTEGER
);

CREATE TABLE IF NOT EXISTS games_store (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL REFERENCES games(id) ON DELETE CASCADE,
    store_id TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS covers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL REFERENCES games(id) ON DELETE CASCADE,
    cover_id TEXT NOT NULL,
    local_path TEXT
);

CREATE TABLE IF NOT EXISTS artworks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL REFERENCES games(id) ON DELETE CASCADE,
    artwork_id TEXT NOT NULL,
    local_path TEXT
);

CREATE TABLE IF NOT EXISTS genres (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS companies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    igdb_id INTEGER NOT NULL UNIQUE,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS belongs_to (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL REFERENCES games(id) ON DELETE CASCADE,
    genre_id INTEGER NOT NULL REFERENCES genres(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS developed_by (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL REFERENCES games(id) ON DELETE CASCADE,
    studio_id INTEGER NOT NULL REFERENCES companies(id) ON DELETE CASCADE
);
"""

# Link tables before their parents
CLEAN_SQL = """
BEGIN;
DELETE FROM developed_by;
DELETE FROM belongs_to;
DELETE FROM artworks;
DELETE FROM covers;
DELETE FROM games_store;
DELETE FROM companies;
DELETE FROM genres;
DELETE FROM games;
COMMIT;
"""


class Database:
    """Owns the SQLite connection for the library store."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("database is not connected")
        return self._conn

    async def connect(self) -> None:
        """Open the database file and create missing tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = await aiosqlite.connect(str(self.db_path), isolation_level=None)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA foreign_keys = ON")
            await self._conn.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            raise StoreError(f"unable to open database {self.db_path}: {e}") from e
        logger.info(f"[DB] Opened {self.db_path}")

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """BEGIN ... COMMIT around the block; ROLLBACK on any exception.

        sqlite3 errors are re-raised as StoreError after the rollback.
        """
        async with self._lock:
            conn = self.connection
            try:
                await conn.execute("BEGIN")
            except sqlite3.Error as e:
                raise StoreError(f"unable to begin transaction: {e}") from e

            try:
                yield conn
                await conn.execute("COMMIT")
            except BaseException as e:
                if conn.in_transaction:
                    await conn.execute("ROLLBACK")
                if isinstance(e, sqlite3.Error):
                    raise StoreError(f"transaction rolled back: {e}") from e
                raise

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        async with self._lock:
            try:
                return list(await self.connection.execute_fetchall(sql, params))
            except sqlite3.Error as e:
                raise StoreError(f"query failed: {e}") from e

    async def fetch_value(self, sql: str, params: Sequence[Any] = ()) -> Any:
        rows = await self.fetch_all(sql, params)
        return rows[0][0] if rows else None

    async def clean(self) -> None:
        """Delete every library row in one statement batch."""
        async with self._lock:
            try:
                await self.connection.executescript(CLEAN_SQL)
            except sqlite3.Error as e:
                if self.connection.in_transaction:
                    await self.connection.execute("ROLLBACK")
                raise StoreError(f"unable to clear library: {e}") from e
        logger.info("[DB] Cleared library tables")
