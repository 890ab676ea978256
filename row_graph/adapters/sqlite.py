"""SQLite adapter using stdlib sqlite3."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from typing import Any

from row_graph.core.connection import ConnectionConfig
from row_graph.core.exceptions import PoolError


def _is_insert(sql: str) -> bool:
    verb = sql.lstrip().split(None, 1)[0].lower() if sql.strip() else ""
    return verb in ("insert", "replace")


class SqliteAdapter:
    """SQLite adapter using stdlib sqlite3."""

    @property
    def paramstyle(self) -> str:
        return "qmark"

    def create_pool(self, config: ConnectionConfig) -> list[sqlite3.Connection]:
        """Create a 'pool' (list of connections) for SQLite.

        Connections are shared across threads only through the pool, never
        concurrently, so the same-thread check is disabled.
        """
        pool: list[sqlite3.Connection] = []
        for _ in range(config.pool_size):
            conn = sqlite3.connect(config.database, check_same_thread=False, **config.extra)
            conn.execute("PRAGMA foreign_keys=ON")
            pool.append(conn)
        return pool

    def acquire_connection(self, pool: list[sqlite3.Connection]) -> sqlite3.Connection:
        """Acquire a connection from the pool."""
        if not pool:
            raise PoolError("No connections available in pool")
        return pool.pop()

    def release_connection(
        self, connection: sqlite3.Connection, pool: list[sqlite3.Connection]
    ) -> None:
        """Release a connection back to the pool."""
        pool.append(connection)

    def close_pool(self, pool: list[sqlite3.Connection]) -> None:
        """Close all connections in the pool."""
        for conn in pool:
            conn.close()
        pool.clear()

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: Sequence[Any] = (),
    ) -> sqlite3.Cursor:
        """Execute SQL and return a cursor."""
        cursor = connection.cursor()
        cursor.execute(sql, tuple(params))
        return cursor

    def generated_keys(self, cursor: sqlite3.Cursor, sql: str) -> list[Any]:
        """Rows of a RETURNING clause, else the row id of an INSERT."""
        if cursor.description is not None:
            return [row[0] for row in cursor.fetchall()]
        if _is_insert(sql) and cursor.lastrowid:
            return [cursor.lastrowid]
        return []
