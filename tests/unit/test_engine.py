"""Unit tests for Engine unit-of-work scoping."""

from __future__ import annotations

import threading
from typing import Any

import pytest

from row_graph.core.connection import ConnectionConfig
from row_graph.core.engine import Engine
from row_graph.core.exceptions import (
    NoResultsError,
    SessionClosedError,
    TransactionStateError,
    UnitOfWorkError,
)
from row_graph.core.session import Session


def _count(engine: Engine) -> int:
    return engine.query(
        lambda s: s.create_query("SELECT COUNT(*) FROM employee").get_unique_result_as(int)
    )


def _insert(session: Session, name: str) -> None:
    session.create_query("INSERT INTO employee (name) VALUES (?)", name).execute_update()


class TestSessionScope:
    def test_commit_on_success(self, engine: Engine) -> None:
        with engine.session() as session:
            _insert(session, "Alice")
        assert _count(engine) == 1

    def test_rollback_on_exception(self, engine: Engine) -> None:
        with pytest.raises(RuntimeError, match="boom"), engine.session() as session:
            _insert(session, "Alice")
            _insert(session, "Bob")
            raise RuntimeError("boom")
        assert _count(engine) == 0

    def test_nested_entries_reuse_session(self, engine: Engine) -> None:
        with engine.session() as outer:
            with engine.session() as inner:
                assert inner is outer
            # Leaving the nested scope neither commits nor closes
            assert outer.is_open
            assert engine.query(lambda s: s) is outer

    def test_nested_failure_rolls_back_everything(self, engine: Engine) -> None:
        def inner(session: Session) -> None:
            _insert(session, "Bob")
            raise ValueError("inner")

        def outer(session: Session) -> None:
            _insert(session, "Alice")
            engine.open(inner)

        with pytest.raises(UnitOfWorkError):
            engine.open(outer)
        assert _count(engine) == 0

    def test_session_closed_after_scope(self, engine: Engine) -> None:
        with engine.session() as session:
            pass
        assert not session.is_open
        with pytest.raises(SessionClosedError):
            session.create_query("SELECT 1")

    def test_connection_returned_to_pool(self, engine: Engine, sqlite_config: ConnectionConfig) -> None:
        for _ in range(sqlite_config.pool_size + 2):
            with engine.session():
                pass

    def test_current_session(self, engine: Engine) -> None:
        with pytest.raises(TransactionStateError):
            engine.current_session()
        with engine.session() as session:
            assert engine.current_session() is session
        assert engine.active_session() is None

    def test_engines_do_not_share_sessions(self, engine: Engine, sqlite_config: ConnectionConfig) -> None:
        other = Engine.from_config(sqlite_config)
        try:
            with engine.session() as first, other.session() as second:
                assert first is not second
        finally:
            other.close()


class TestThreadIsolation:
    def test_other_thread_gets_own_session(self, engine: Engine) -> None:
        seen: dict[str, Any] = {}

        def worker() -> None:
            seen["active"] = engine.active_session()
            with engine.session() as session:
                seen["session"] = session

        with engine.session() as session:
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert seen["active"] is None
        assert seen["session"] is not session


class TestWorkFunctions:
    def test_query_returns_result(self, engine: Engine) -> None:
        assert engine.query(lambda s: 42) == 42

    def test_foreign_exception_wrapped(self, engine: Engine) -> None:
        def work(session: Session) -> None:
            _insert(session, "Alice")
            raise KeyError("missing")

        with pytest.raises(UnitOfWorkError) as exc_info:
            engine.open(work)
        assert isinstance(exc_info.value.cause, KeyError)
        assert exc_info.value.__cause__ is exc_info.value.cause
        assert _count(engine) == 0

    def test_library_exception_propagates(self, engine: Engine) -> None:
        with pytest.raises(NoResultsError):
            engine.query(
                lambda s: s.create_query("SELECT * FROM employee").get_unique_result_as(dict)
            )
