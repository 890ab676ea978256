"""RowGraph - SQL-first mapping of result rows to entity graphs."""

from __future__ import annotations

from row_graph.core.connection import ConnectionConfig, ConnectionManager
from row_graph.core.conversion import ConversionRegistry
from row_graph.core.engine import Engine
from row_graph.core.enums import DatabaseBackend, FieldKind, ReturnInfo
from row_graph.core.exceptions import (
    AdapterError,
    ConfigurationError,
    ConnectionError,  # noqa: A004
    ConversionError,
    DuplicateParameterError,
    EntityConstructionError,
    ExecutionError,
    MappingError,
    MissingParameterError,
    NonUniqueResultError,
    NoResultsError,
    ParameterBindingError,
    ParameterIndexError,
    PoolError,
    RowGraphError,
    SessionClosedError,
    TransactionError,
    TransactionStateError,
    UnitOfWorkError,
    UnknownParameterError,
)
from row_graph.core.query import Query
from row_graph.core.session import Session
from row_graph.mapping.annotations import (
    Column,
    Key,
    LoadQuery,
    MultiRelation,
    SingleRelation,
    load_query,
)
from row_graph.mapping.descriptor import describe
from row_graph.mapping.mapper import RowMapper
from row_graph.proxy.factory import is_loaded
from row_graph.repository.base import Repository, sql_query, sql_update, transactional

__all__ = [
    # Connection
    "ConnectionConfig",
    "ConnectionManager",
    # Engine
    "Engine",
    "Session",
    "Query",
    # Conversion
    "ConversionRegistry",
    # Mapping
    "Column",
    "Key",
    "SingleRelation",
    "MultiRelation",
    "LoadQuery",
    "load_query",
    "describe",
    "RowMapper",
    "is_loaded",
    # Repository
    "Repository",
    "transactional",
    "sql_query",
    "sql_update",
    # Enums
    "DatabaseBackend",
    "FieldKind",
    "ReturnInfo",
    # Exceptions
    "RowGraphError",
    "ConfigurationError",
    "MappingError",
    "ConversionError",
    "EntityConstructionError",
    "ExecutionError",
    "NoResultsError",
    "NonUniqueResultError",
    "SessionClosedError",
    "ParameterBindingError",
    "MissingParameterError",
    "DuplicateParameterError",
    "UnknownParameterError",
    "ParameterIndexError",
    "TransactionError",
    "TransactionStateError",
    "UnitOfWorkError",
    "AdapterError",
    "ConnectionError",
    "PoolError",
]
