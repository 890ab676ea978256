"""Field-level markers for entity declarations.

Markers are attached with ``typing.Annotated``::

    @dataclass
    class Employee:
        employee_id: Annotated[int | None, Key()] = None
        full_name: Annotated[str | None, Column("name")] = None
        address: Annotated[Address | None, SingleRelation()] = None
        offices: Annotated[list[Office], MultiRelation()] = field(default_factory=list)
        reviews: Annotated[
            list[Review] | None,
            LoadQuery("SELECT * FROM review WHERE employee_id = :employee_id"),
        ] = None

A field without markers maps the column of the same name, eagerly, as a
scalar.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

LOAD_QUERY_ATTRIBUTE = "__row_graph_load_query__"


@dataclass(frozen=True)
class Column:
    """Maps the field to a column whose label differs from the field name."""

    name: str


@dataclass(frozen=True)
class Key:
    """Marks the field whose value identifies the entity across joined rows."""


@dataclass(frozen=True)
class SingleRelation:
    """Marks a field holding one related entity mapped from the same row."""


@dataclass(frozen=True)
class MultiRelation:
    """Marks a collection field of related entities mapped from joined rows."""


@dataclass(frozen=True)
class LoadQuery:
    """Defers a field until first access, loading it with *sql*.

    Parameters in *sql* are bound from the owning entity's own fields.
    ``field`` names the backing field when the marker decorates an accessor
    method; ``map_key`` names the related entity's field used as the key
    when the field is a mapping.
    """

    sql: str
    field: str | None = None
    map_key: str | None = None


def load_query(sql: str, *, field: str | None = None, map_key: str | None = None) -> Callable[[F], F]:
    """Declare an accessor method that lazily loads its backing field.

    The backing field is *field*, or inferred from a ``get_<field>`` method
    name.
    """

    def decorator(func: F) -> F:
        setattr(func, LOAD_QUERY_ATTRIBUTE, LoadQuery(sql, field=field, map_key=map_key))
        return func

    return decorator
