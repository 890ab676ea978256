"""Session: one connection bound to one unit of work."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any

from row_graph.core.conversion import ConversionRegistry
from row_graph.core.exceptions import SessionClosedError
from row_graph.core.query import Query
from row_graph.mapping.cursor import DEFAULT_FETCH_SIZE

logger = logging.getLogger(__name__)


class _SessionState(Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class Session:
    """A connection scoped to a unit of work.

    Sessions are created by ``Engine`` and closed when the outermost unit of
    work ends. Lazy-loading proxies keep a reference to the session that
    created them and fail with SessionClosedError once it is closed.
    """

    def __init__(
        self,
        connection: Any,
        adapter: Any,
        conversions: ConversionRegistry,
        fetch_size: int = DEFAULT_FETCH_SIZE,
    ) -> None:
        self._connection = connection
        self._adapter = adapter
        self._conversions = conversions
        self.fetch_size = fetch_size
        self.owner = threading.get_ident()
        self._state = _SessionState.ACTIVE

    @property
    def is_open(self) -> bool:
        return self._state is _SessionState.ACTIVE

    @property
    def connection(self) -> Any:
        self.check_open("use the connection")
        return self._connection

    @property
    def adapter(self) -> Any:
        return self._adapter

    @property
    def conversions(self) -> ConversionRegistry:
        return self._conversions

    def check_open(self, action: str) -> None:
        if self._state is not _SessionState.ACTIVE:
            raise SessionClosedError(f"Cannot {action}: session is {self._state.value}")

    def create_query(self, sql: str, *params: Any) -> Query:
        """Create a query; *params* fill placeholders by position."""
        self.check_open("create a query")
        query = Query(sql, self)
        for index, value in enumerate(params, start=1):
            query.set_parameter(index, value)
        return query

    def commit(self) -> None:
        self.check_open("commit")
        self._connection.commit()

    def rollback(self) -> None:
        self.check_open("rollback")
        self._connection.rollback()

    def close(self) -> None:
        if self._state is _SessionState.ACTIVE:
            self._state = _SessionState.CLOSED
            logger.debug("Session closed")
