"""Enumerations shared across RowGraph."""

from __future__ import annotations

from enum import Enum


class DatabaseBackend(Enum):
    """Supported database backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


class FieldKind(Enum):
    """How an entity field is populated from a result row."""

    SCALAR = "scalar"
    SINGLE_RELATION = "single_relation"
    MULTI_RELATION = "multi_relation"


class ReturnInfo(Enum):
    """What an ``@sql_update`` repository method returns."""

    AFFECTED_ROWS = "affected_rows"
    GENERATED_KEYS = "generated_keys"
