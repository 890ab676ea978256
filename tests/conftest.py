"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from row_graph.adapters.sqlite import SqliteAdapter
from row_graph.core.connection import ConnectionConfig, ConnectionManager
from row_graph.core.engine import Engine

SCHEMA = [
    """CREATE TABLE address (
        address_id INTEGER PRIMARY KEY AUTOINCREMENT,
        street TEXT,
        city TEXT
    )""",
    """CREATE TABLE employee (
        employee_id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        salary REAL,
        address_id INTEGER REFERENCES address (address_id)
    )""",
    """CREATE TABLE office (
        office_id INTEGER PRIMARY KEY AUTOINCREMENT,
        employee_id INTEGER REFERENCES employee (employee_id),
        office_name TEXT,
        is_primary INTEGER
    )""",
    """CREATE TABLE review (
        review_id INTEGER PRIMARY KEY AUTOINCREMENT,
        employee_id INTEGER REFERENCES employee (employee_id),
        score INTEGER,
        comment TEXT
    )""",
]


class RecordingAdapter(SqliteAdapter):
    """SQLite adapter that records every executed statement."""

    def __init__(self) -> None:
        self.statements: list[str] = []

    def execute(self, connection: Any, sql: str, params: Sequence[Any] = ()) -> Any:
        self.statements.append(sql)
        return super().execute(connection, sql, params)


@pytest.fixture
def sqlite_config(tmp_path: Path) -> ConnectionConfig:
    """SQLite file database config with room for two concurrent sessions."""
    return ConnectionConfig(driver="sqlite", database=str(tmp_path / "test.db"), pool_size=2)


@pytest.fixture
def recording_adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def engine(sqlite_config: ConnectionConfig, recording_adapter: RecordingAdapter) -> Iterator[Engine]:
    """Engine over a SQLite database with the employee schema created."""
    manager = ConnectionManager(sqlite_config, adapter=recording_adapter)
    with manager.get_connection() as conn:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()
    eng = Engine(manager)
    yield eng
    eng.close()


@pytest.fixture
def seeded_engine(engine: Engine, recording_adapter: RecordingAdapter) -> Engine:
    """Engine with one employee who has three offices and two reviews."""
    with engine.connection_manager.get_connection() as conn:
        conn.execute("INSERT INTO address (address_id, street, city) VALUES (1, '1 Main St', 'Springfield')")
        conn.execute(
            "INSERT INTO employee (employee_id, name, salary, address_id) VALUES (1, 'Alice', 100.5, 1)"
        )
        conn.execute("INSERT INTO employee (employee_id, name, salary) VALUES (2, 'Bob', 80)")
        conn.executemany(
            "INSERT INTO office (office_id, employee_id, office_name, is_primary) VALUES (?, ?, ?, ?)",
            [(1, 1, "North", 1), (2, 1, "South", 0), (3, 1, "East", 0)],
        )
        conn.executemany(
            "INSERT INTO review (review_id, employee_id, score, comment) VALUES (?, ?, ?, ?)",
            [(1, 1, 5, "great"), (2, 1, 4, "good")],
        )
        conn.commit()
    recording_adapter.statements.clear()
    return engine
