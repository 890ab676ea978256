"""PostgreSQL adapter using psycopg (v3+)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from row_graph.core.connection import ConnectionConfig
from row_graph.core.exceptions import PoolError


def _build_conninfo(config: ConnectionConfig) -> str:
    """Build a libpq connection string from config fields."""
    parts: list[str] = []
    if config.host is not None:
        parts.append(f"host={config.host}")
    if config.port is not None:
        parts.append(f"port={config.port}")
    if config.user is not None:
        parts.append(f"user={config.user}")
    if config.password is not None:
        parts.append(f"password={config.password}")
    parts.append(f"dbname={config.database}")
    return " ".join(parts)


class PostgresqlAdapter:
    """PostgreSQL adapter using psycopg (v3+).

    PostgreSQL reports generated keys only through ``RETURNING``.
    """

    @property
    def paramstyle(self) -> str:
        return "format"

    def create_pool(self, config: ConnectionConfig) -> list[Any]:
        import psycopg

        conninfo = _build_conninfo(config)
        pool: list[Any] = []
        for _ in range(config.pool_size):
            conn = psycopg.connect(conninfo, **config.extra)
            pool.append(conn)
        return pool

    def acquire_connection(self, pool: list[Any]) -> Any:
        if not pool:
            raise PoolError("No connections available in pool")
        return pool.pop()

    def release_connection(self, connection: Any, pool: list[Any]) -> None:
        pool.append(connection)

    def close_pool(self, pool: list[Any]) -> None:
        for conn in pool:
            conn.close()
        pool.clear()

    def execute(
        self,
        connection: Any,
        sql: str,
        params: Sequence[Any] = (),
    ) -> Any:
        cursor = connection.cursor()
        cursor.execute(sql, tuple(params))
        return cursor

    def generated_keys(self, cursor: Any, sql: str) -> list[Any]:
        if cursor.description is None:
            return []
        return [row[0] for row in cursor.fetchall()]
