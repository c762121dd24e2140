"""
Construct OS SQLite Backend

Embedded single-file store for snapshot records with:
- WAL journal for crash-safe writes
- Serialized writers behind an asyncio lock
- Dict rows
- In-memory mode for tests
"""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import aiosqlite
import structlog

from constructos.persistence.backends.base import BaseBackend
from constructos.persistence.config import SQLiteConfig

logger = structlog.get_logger(__name__)


class SQLiteBackend(BaseBackend):
    """
    SQLite backend over a single aiosqlite connection.

    SQLite allows one writer at a time; ``transaction()`` holds the
    write lock for the whole unit of work.
    """

    def __init__(self, config: Optional[SQLiteConfig] = None):
        self.config = config or SQLiteConfig()
        self._conn: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    @staticmethod
    def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict[str, Any]:
        """Convert row to dictionary."""
        return {
            col[0]: row[idx]
            for idx, col in enumerate(cursor.description)
        }

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def initialize(self) -> None:
        """Open the connection and apply pragmas."""
        if self._conn is not None:
            return

        if not self.config.in_memory:
            self.config.path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Opening SQLite store", path=str(self.config.path))

        conn = await aiosqlite.connect(
            str(self.config.path),
            timeout=self.config.busy_timeout / 1000,
        )
        conn.row_factory = self._dict_factory

        pragmas = [
            f"PRAGMA journal_mode = {self.config.journal_mode}",
            f"PRAGMA synchronous = {self.config.synchronous}",
            f"PRAGMA busy_timeout = {self.config.busy_timeout}",
            f"PRAGMA foreign_keys = {'ON' if self.config.foreign_keys else 'OFF'}",
        ]
        for pragma in pragmas:
            await conn.execute(pragma)

        self._conn = conn

    async def shutdown(self) -> None:
        """Close the connection."""
        if self._conn is None:
            return

        async with self._write_lock:
            await self._conn.close()
            self._conn = None

        logger.info("SQLite store closed", path=str(self.config.path))

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("SQLite backend is not initialized")
        return self._conn

    async def execute_ddl(self, ddl: str) -> None:
        async with self.transaction():
            await self._connection().executescript(ddl)

    async def execute(self, query: str, params: Optional[tuple] = None) -> int:
        cursor = await self._connection().execute(query, params or ())
        return cursor.rowcount

    async def fetch_one(
        self,
        query: str,
        params: Optional[tuple] = None,
    ) -> Optional[dict[str, Any]]:
        """Fetch one row."""
        cursor = await self._connection().execute(query, params or ())
        return await cursor.fetchone()

    async def fetch_all(
        self,
        query: str,
        params: Optional[tuple] = None,
    ) -> list[dict[str, Any]]:
        """Fetch all rows."""
        cursor = await self._connection().execute(query, params or ())
        return list(await cursor.fetchall())

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[None, None]:
        """Serialized write transaction; rolls back on error."""
        async with self._write_lock:
            conn = self._connection()
            try:
                yield
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()

    async def integrity_check(self) -> list[str]:
        """Run integrity check on the database."""
        results = await self.fetch_all("PRAGMA integrity_check")
        return [r.get("integrity_check", str(r)) for r in results]
