"""Database adapter protocol.

Every adapter module MUST implement this protocol so the engine can stay
driver-agnostic.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from row_graph.core.connection import ConnectionConfig


@runtime_checkable
class Adapter(Protocol):
    """Synchronous DB-API database adapter protocol."""

    @property
    def paramstyle(self) -> str:
        """Positional binding style: 'qmark' (?) or 'format' (%s)."""
        ...

    def create_pool(self, config: ConnectionConfig) -> Any:
        """Create a connection pool."""
        ...

    def acquire_connection(self, pool: Any) -> Any:
        """Acquire a connection from the pool."""
        ...

    def release_connection(self, connection: Any, pool: Any) -> None:
        """Release a connection back to the pool."""
        ...

    def close_pool(self, pool: Any) -> None:
        """Close the pool and release all connections."""
        ...

    def execute(
        self,
        connection: Any,
        sql: str,
        params: Sequence[Any] = (),
    ) -> Any:
        """Execute SQL with positional parameters and return a DB-API cursor."""
        ...

    def generated_keys(self, cursor: Any, sql: str) -> list[Any]:
        """Return the keys generated by the statement just executed on *cursor*."""
        ...
