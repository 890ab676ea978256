"""Connection configuration and management.

ConnectionConfig is a Pydantic model for type-safe connection config.
ConnectionManager uses the adapter protocol for pool-based connection
lifecycle.
"""

from __future__ import annotations

import importlib
import logging
import threading
from contextlib import contextmanager
from typing import Any

from pydantic import BaseModel

from row_graph.core.enums import DatabaseBackend
from row_graph.core.exceptions import AdapterError, ConnectionError, PoolError  # noqa: A004

logger = logging.getLogger(__name__)


class ConnectionConfig(BaseModel):
    """Configuration for database connections."""

    driver: str
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str
    pool_size: int = 5
    extra: dict[str, Any] = {}


# Adapter module mapping: driver name → (module_path, class_name)
_ADAPTER_MAP: dict[str, tuple[str, str]] = {
    DatabaseBackend.SQLITE.value: ("row_graph.adapters.sqlite", "SqliteAdapter"),
    DatabaseBackend.POSTGRESQL.value: ("row_graph.adapters.postgresql", "PostgresqlAdapter"),
    DatabaseBackend.MYSQL.value: ("row_graph.adapters.mysql", "MysqlAdapter"),
}


def _load_adapter(driver: str) -> Any:
    """Load an adapter by driver name."""
    driver_lower = driver.lower()
    if driver_lower not in _ADAPTER_MAP:
        raise AdapterError(f"Unsupported database driver: {driver}")

    module_path, cls_name = _ADAPTER_MAP[driver_lower]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load adapter for '{driver}': {e}") from e


class ConnectionManager:
    """Connection manager using the Adapter protocol.

    The pool is created lazily on first acquisition. Acquisition and release
    are serialized so concurrent units of work never receive the same
    connection.
    """

    def __init__(self, config: ConnectionConfig, adapter: Any | None = None) -> None:
        self.config = config
        self._adapter = adapter if adapter is not None else _load_adapter(config.driver)
        self._pool: Any = None
        self._lock = threading.Lock()

    @property
    def adapter(self) -> Any:
        return self._adapter

    def initialize_pool(self) -> Any:
        """Initialize the connection pool."""
        with self._lock:
            if self._pool is None:
                try:
                    self._pool = self._adapter.create_pool(self.config)
                except AdapterError:
                    raise
                except Exception as e:
                    raise ConnectionError(
                        f"Failed to connect to '{self.config.database}': {e}"
                    ) from e
                logger.debug(
                    "Created %s pool with %d connections", self.config.driver, self.config.pool_size
                )
        return self._pool

    def acquire(self) -> Any:
        """Take a connection out of the pool."""
        if self._pool is None:
            self.initialize_pool()
        with self._lock:
            if self._pool is None:
                raise PoolError("Connection pool is closed")
            return self._adapter.acquire_connection(self._pool)

    def release(self, connection: Any) -> None:
        """Return a connection to the pool, or close it if the pool is gone."""
        with self._lock:
            if self._pool is None:
                connection.close()
                return
            self._adapter.release_connection(connection, self._pool)

    @contextmanager
    def get_connection(self):  # type: ignore[no-untyped-def]
        """Get a connection from the pool as a context manager."""
        connection = self.acquire()
        try:
            yield connection
        finally:
            self.release(connection)

    def close_pool(self) -> None:
        """Close the connection pool."""
        with self._lock:
            if self._pool is not None:
                self._adapter.close_pool(self._pool)
                self._pool = None
