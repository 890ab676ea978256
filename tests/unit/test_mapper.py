"""Unit tests for RowMapper against in-memory DB-API cursors."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Annotated, Any

import pytest

from row_graph.core.conversion import ConversionRegistry
from row_graph.core.exceptions import ConversionError, EntityConstructionError, MappingError
from row_graph.mapping.annotations import Column, Key, MultiRelation, SingleRelation
from row_graph.mapping.cursor import ResultCursor
from row_graph.mapping.mapper import RowMapper


class FakeCursor:
    """Minimal DB-API cursor over fixed rows."""

    def __init__(self, columns: list[str], rows: list[tuple[Any, ...]]) -> None:
        self.description = [(c, None, None, None, None, None, None) for c in columns]
        self._rows = list(rows)
        self.closed = False
        self.fetched = 0

    def fetchmany(self, size: int) -> list[tuple[Any, ...]]:
        batch = self._rows[self.fetched : self.fetched + size]
        self.fetched += len(batch)
        return batch

    def close(self) -> None:
        self.closed = True


@dataclass
class Address:
    address_id: Annotated[int | None, Key()] = None
    city: str | None = None


@dataclass
class Office:
    office_id: Annotated[int | None, Key()] = None
    office_name: str | None = None


@dataclass
class Employee:
    employee_id: Annotated[int | None, Key()] = None
    full_name: Annotated[str | None, Column("name")] = None
    salary: float | None = None
    address: Annotated[Address | None, SingleRelation()] = None
    offices: Annotated[list[Office], MultiRelation()] = field(default_factory=list)


@dataclass
class Tag:
    label: str | None = None


@dataclass
class Post:
    post_id: Annotated[int | None, Key()] = None
    tags: Annotated[list[Tag], MultiRelation()] = field(default_factory=list)


@dataclass
class Department:
    department_id: Annotated[int | None, Key()] = None
    members: Annotated[set[Member], MultiRelation()] = field(default_factory=set)
    history: Annotated[deque[Office], MultiRelation()] = field(default_factory=deque)


@dataclass(eq=False)
class Member:
    member_id: Annotated[int | None, Key()] = None
    department: Annotated[Department | None, SingleRelation()] = None


class Unconstructible:
    value: int | None

    def __init__(self, required: int) -> None:
        self.value = required


def _map(target: type, columns: list[str], rows: list[tuple[Any, ...]]) -> list[Any]:
    cursor = ResultCursor(FakeCursor(columns, rows), fetch_size=2)
    return RowMapper(target, ConversionRegistry()).map_all(cursor)


EMPLOYEE_COLUMNS = ["employee_id", "name", "salary", "address_id", "city", "office_id", "office_name"]


class TestEntityMapping:
    def test_joined_rows_collapse_to_one_parent(self) -> None:
        rows = [
            (1, "Alice", 100.0, 10, "Springfield", 1, "North"),
            (1, "Alice", 100.0, 10, "Springfield", 2, "South"),
            (1, "Alice", 100.0, 10, "Springfield", 3, "East"),
        ]
        employees = _map(Employee, EMPLOYEE_COLUMNS, rows)
        assert len(employees) == 1
        alice = employees[0]
        assert alice.full_name == "Alice"
        assert alice.address == Address(10, "Springfield")
        assert [o.office_name for o in alice.offices] == ["North", "South", "East"]

    def test_parents_in_cursor_order(self) -> None:
        rows = [
            (2, "Bob", None, None, None, 4, "West"),
            (1, "Alice", None, None, None, 1, "North"),
            (2, "Bob", None, None, None, 5, "Up"),
        ]
        employees = _map(Employee, EMPLOYEE_COLUMNS, rows)
        assert [e.employee_id for e in employees] == [2, 1]
        assert [o.office_id for o in employees[0].offices] == [4, 5]

    def test_same_key_is_same_instance_in_relations(self) -> None:
        rows = [
            (1, "Alice", None, None, None, 1, "North"),
            (2, "Bob", None, None, None, 1, "North"),
        ]
        alice, bob = _map(Employee, EMPLOYEE_COLUMNS, rows)
        assert alice.offices[0] is bob.offices[0]

    def test_repeated_child_not_duplicated(self) -> None:
        rows = [
            (1, "Alice", None, 10, "Springfield", 1, "North"),
            (1, "Alice", None, 11, "Shelbyville", 1, "North"),
        ]
        (alice,) = _map(Employee, EMPLOYEE_COLUMNS, rows)
        assert len(alice.offices) == 1
        # First row wins for the single relation as well
        assert alice.address.city == "Springfield"

    def test_first_row_wins_for_scalars(self) -> None:
        rows = [
            (1, "Alice", 100.0, None, None, None, None),
            (1, "Alicia", 200.0, None, None, None, None),
        ]
        (alice,) = _map(Employee, EMPLOYEE_COLUMNS, rows)
        assert alice.full_name == "Alice"
        assert alice.salary == 100.0

    def test_outer_join_miss_leaves_relations_unset(self) -> None:
        rows = [(1, "Alice", None, None, None, None, None)]
        (alice,) = _map(Employee, EMPLOYEE_COLUMNS, rows)
        assert alice.address is None
        assert alice.offices == []

    def test_null_keeps_default(self) -> None:
        @dataclass
        class Defaulted:
            code: int | None = None
            name: str | None = "unknown"

        (entity,) = _map(Defaulted, ["code", "name"], [(5, None)])
        assert entity.name == "unknown"

    def test_absent_relation_columns(self) -> None:
        employees = _map(Employee, ["employee_id", "name"], [(1, "Alice")])
        assert employees == [Employee(employee_id=1, full_name="Alice")]

    def test_case_insensitive_labels(self) -> None:
        (alice,) = _map(Employee, ["EMPLOYEE_ID", "Name"], [(1, "Alice")])
        assert alice.employee_id == 1
        assert alice.full_name == "Alice"

    def test_unkeyed_children_are_not_merged(self) -> None:
        rows = [(1, "a"), (1, "a")]
        (post,) = _map(Post, ["post_id", "label"], rows)
        assert [t.label for t in post.tags] == ["a", "a"]

    def test_unkeyed_roots_are_never_merged(self) -> None:
        tags = _map(Tag, ["label"], [("a",), ("a",)])
        assert len(tags) == 2
        assert tags[0] is not tags[1]

    def test_circular_relations_terminate(self) -> None:
        rows = [(1, 7), (1, 8)]
        departments = _map(Department, ["department_id", "member_id"], rows)
        assert len(departments) == 1
        assert {m.member_id for m in departments[0].members} == {7, 8}
        # The back reference to the visited type is skipped
        assert all(m.department is None for m in departments[0].members)

    def test_collection_factories(self) -> None:
        (dept,) = _map(Department, ["department_id", "office_id"], [(1, 5), (1, 6)])
        assert isinstance(dept.history, deque)
        assert [o.office_id for o in dept.history] == [5, 6]

    def test_conversion_error_names_field(self) -> None:
        with pytest.raises(ConversionError) as exc_info:
            _map(Employee, ["employee_id", "salary"], [(1, "lots")])
        assert exc_info.value.target == "Employee.salary"

    def test_construction_error(self) -> None:
        with pytest.raises(EntityConstructionError, match="Unconstructible"):
            _map(Unconstructible, ["value"], [(1,)])

    def test_mapping_is_lazy(self) -> None:
        raw = FakeCursor(["employee_id"], [(1,), (2,), (3,), (4,)])
        stream = RowMapper(Employee, ConversionRegistry()).stream(ResultCursor(raw, fetch_size=1))
        assert next(stream).employee_id == 1
        assert raw.fetched == 1
        assert [e.employee_id for e in stream] == [2, 3, 4]
        assert raw.closed


class TestScalarAndDictTargets:
    def test_scalar_target(self) -> None:
        assert _map(int, ["count"], [("3",), (4,)]) == [3, 4]

    def test_scalar_target_requires_one_column(self) -> None:
        with pytest.raises(MappingError, match="2 columns"):
            _map(int, ["a", "b"], [(1, 2)])

    def test_dict_target_keeps_first_duplicate_label(self) -> None:
        rows = _map(dict, ["id", "name", "id"], [(1, "Alice", 99)])
        assert rows == [{"id": 1, "name": "Alice"}]

    def test_empty_result(self) -> None:
        assert _map(Employee, EMPLOYEE_COLUMNS, []) == []


class TestResultCursor:
    def test_label_lookup(self) -> None:
        cursor = ResultCursor(FakeCursor(["Id", "id", "NAME"], []))
        assert cursor.index_of("id") == 1
        assert cursor.index_of("ID") == 0
        assert cursor.index_of("name") == 2
        assert cursor.index_of("missing") is None
        assert cursor.has_column("Name")

    def test_dict_rows_become_sequences(self) -> None:
        raw = FakeCursor(["a", "b"], [{"a": 1, "b": 2}])  # type: ignore[list-item]
        assert list(ResultCursor(raw)) == [(1, 2)]

    def test_no_description_yields_nothing(self) -> None:
        raw = FakeCursor([], [])
        raw.description = None  # type: ignore[assignment]
        assert list(ResultCursor(raw)) == []
        assert raw.closed
