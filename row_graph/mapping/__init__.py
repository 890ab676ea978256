"""Mapping layer - turn result rows into entity graphs."""

from __future__ import annotations

from row_graph.mapping.annotations import (
    Column,
    Key,
    LoadQuery,
    MultiRelation,
    SingleRelation,
    load_query,
)
from row_graph.mapping.cursor import ResultCursor
from row_graph.mapping.descriptor import (
    AccessorDescriptor,
    EntityDescriptor,
    FieldDescriptor,
    describe,
)
from row_graph.mapping.mapper import RowMapper

__all__ = [
    "Column",
    "Key",
    "LoadQuery",
    "MultiRelation",
    "SingleRelation",
    "load_query",
    "ResultCursor",
    "RowMapper",
    "EntityDescriptor",
    "FieldDescriptor",
    "AccessorDescriptor",
    "describe",
]
