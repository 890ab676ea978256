"""RowGraph exception hierarchy.

All exceptions are RowGraph-specific. Raw driver exceptions are never
exposed to callers; they are chained as ``__cause__``.
"""

from __future__ import annotations

from collections.abc import Sequence


class RowGraphError(Exception):
    """Base exception for all RowGraph errors."""


# --- Configuration ---


class ConfigurationError(RowGraphError):
    """Raised when an entity declaration cannot be used as declared."""

    def __init__(self, target: str, detail: str) -> None:
        self.target = target
        self.detail = detail
        super().__init__(f"Invalid declaration on {target}: {detail}")


# --- Mapping ---


class MappingError(RowGraphError):
    """Base for mapping errors."""


class ConversionError(MappingError):
    """Raised when a column value cannot be converted to the field type."""

    def __init__(self, target: str, type_name: str, value: object) -> None:
        self.target = target
        self.type_name = type_name
        self.value = value
        super().__init__(f"Cannot convert {value!r} to {type_name} for {target}")


class EntityConstructionError(MappingError):
    """Raised when an entity class cannot be instantiated without arguments."""

    def __init__(self, target_class: str, detail: str) -> None:
        self.target_class = target_class
        super().__init__(
            f"Could not construct {target_class}, verify it can be created with no arguments: "
            f"{detail}"
        )


# --- Execution ---


class ExecutionError(RowGraphError):
    """Base for query execution errors."""


class NoResultsError(ExecutionError):
    """Raised when a unique result was requested and no row matched."""

    def __init__(self, sql: str) -> None:
        self.sql = sql
        super().__init__(f"Query returned no results: {sql}")


class NonUniqueResultError(ExecutionError):
    """Raised when a unique result was requested and several rows matched."""

    def __init__(self, sql: str, row_count: int) -> None:
        self.sql = sql
        self.row_count = row_count
        super().__init__(f"Query returned {row_count} results (expected 1): {sql}")


class SessionClosedError(ExecutionError):
    """Raised when a closed session is used, directly or by a lazy load."""

    def __init__(self, detail: str = "session is no longer open") -> None:
        super().__init__(detail)


class ParameterBindingError(ExecutionError):
    """Base for parameter binding failures."""

    def __init__(self, sql: str, detail: str) -> None:
        self.sql = sql
        super().__init__(f"Parameter binding error for '{sql}': {detail}")


class MissingParameterError(ParameterBindingError):
    """Raised when a parameter batch leaves placeholders without values."""

    def __init__(self, sql: str, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(sql, f"missing values for parameters {self.missing}")


class DuplicateParameterError(ParameterBindingError):
    """Raised when a named placeholder occurs twice in one statement."""

    def __init__(self, sql: str, name: str) -> None:
        self.name = name
        super().__init__(sql, f"duplicate parameter name ':{name}'")


class UnknownParameterError(ParameterBindingError):
    """Raised when a value is set for a placeholder the statement lacks."""

    def __init__(self, sql: str, name: str) -> None:
        self.name = name
        super().__init__(sql, f"unknown parameter '{name}'")


class ParameterIndexError(ParameterBindingError):
    """Raised when a positional index is outside the statement's placeholders."""

    def __init__(self, sql: str, index: int, count: int) -> None:
        self.index = index
        self.count = count
        super().__init__(
            sql, f"parameter index {index} is out of range (statement has {count} parameters)"
        )


# --- Transaction ---


class TransactionError(RowGraphError):
    """Base for transaction errors."""


class TransactionStateError(TransactionError):
    """Raised on invalid unit-of-work state transitions."""

    def __init__(self, current_state: str, attempted_action: str) -> None:
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} in state '{current_state}'")


class UnitOfWorkError(TransactionError):
    """Wraps an exception raised inside a unit of work after rollback."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Unit of work rolled back: {type(cause).__name__}: {cause}")


# --- Adapter ---


class AdapterError(RowGraphError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on connection failures."""


class PoolError(AdapterError):
    """Raised on connection pool failures."""
