"""Unit-of-work engine.

The Engine owns the connection manager and binds one Session per logical
call context. The outermost unit of work acquires a connection, commits on
success and rolls back on any exception; nested units of work on the same
thread reuse the bound session.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any, TypeVar

from row_graph.core.connection import ConnectionConfig, ConnectionManager
from row_graph.core.conversion import ConversionRegistry
from row_graph.core.exceptions import (
    RowGraphError,
    TransactionError,
    TransactionStateError,
    UnitOfWorkError,
)
from row_graph.core.session import Session
from row_graph.mapping.cursor import DEFAULT_FETCH_SIZE

logger = logging.getLogger(__name__)

T = TypeVar("T")

# id(engine) -> session bound in the current call context
_ACTIVE_SESSIONS: ContextVar[Mapping[int, Session]] = ContextVar(
    "row_graph_active_sessions", default=MappingProxyType({})
)


class Engine:
    """Entry point for units of work against one database.

    Args:
        connection_manager: Source of connections.
        conversions: Conversion registry shared by every session. A new
            default registry is used when omitted.
        fetch_size: Rows fetched per round trip while mapping.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        conversions: ConversionRegistry | None = None,
        fetch_size: int = DEFAULT_FETCH_SIZE,
    ) -> None:
        self._connection_manager = connection_manager
        self._conversions = conversions if conversions is not None else ConversionRegistry()
        self._fetch_size = fetch_size

    @classmethod
    def from_config(
        cls,
        config: ConnectionConfig,
        conversions: ConversionRegistry | None = None,
    ) -> Engine:
        """Create an Engine from a ConnectionConfig."""
        return cls(ConnectionManager(config), conversions)

    @property
    def conversions(self) -> ConversionRegistry:
        return self._conversions

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connection_manager

    def active_session(self) -> Session | None:
        """The open session bound to this call context, if any."""
        session = _ACTIVE_SESSIONS.get().get(id(self))
        if session is None or not session.is_open or session.owner != threading.get_ident():
            return None
        return session

    def current_session(self) -> Session:
        """The session bound to this call context.

        Raises:
            TransactionStateError: If no unit of work is active.
        """
        session = self.active_session()
        if session is None:
            raise TransactionStateError("absent", "access the current session")
        return session

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Enter a unit of work, joining the active one if there is one."""
        active = self.active_session()
        if active is not None:
            logger.debug("Joining active session")
            yield active
            return

        connection = self._connection_manager.acquire()
        session = Session(
            connection, self._connection_manager.adapter, self._conversions, self._fetch_size
        )
        bound = dict(_ACTIVE_SESSIONS.get())
        bound[id(self)] = session
        token = _ACTIVE_SESSIONS.set(MappingProxyType(bound))
        logger.debug("Session opened")
        try:
            yield session
            try:
                connection.commit()
            except Exception as e:
                raise TransactionError(f"Commit failed: {e}") from e
        except BaseException:
            logger.warning("Rolling back unit of work after an exception")
            try:
                connection.rollback()
            except Exception:
                logger.exception("Rollback failed")
            raise
        finally:
            _ACTIVE_SESSIONS.reset(token)
            session.close()
            self._connection_manager.release(connection)

    def open(self, work: Callable[[Session], Any]) -> None:
        """Run *work* in a unit of work.

        Raises:
            UnitOfWorkError: Wrapping any non-RowGraph exception raised by
                *work*, after rollback.
        """
        self.query(work)

    def query(self, work: Callable[[Session], T]) -> T:
        """Run *work* in a unit of work and return its result.

        Raises:
            UnitOfWorkError: Wrapping any non-RowGraph exception raised by
                *work*, after rollback.
        """
        try:
            with self.session() as session:
                return work(session)
        except RowGraphError:
            raise
        except Exception as e:
            raise UnitOfWorkError(e) from e

    def close(self) -> None:
        """Close the connection pool."""
        self._connection_manager.close_pool()
