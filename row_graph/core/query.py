"""Parameterized statements executed on a session.

A Query collects parameter batches, either set one value at a time and
closed with ``add_batch()``, or bound from an entity's fields with
``bind()``. Queries run one batch; updates run every batch in order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

from row_graph.core.conversion import ConversionRegistry, Reader, Writer
from row_graph.core.exceptions import (
    ExecutionError,
    MissingParameterError,
    NonUniqueResultError,
    NoResultsError,
    ParameterBindingError,
    ParameterIndexError,
    RowGraphError,
    UnknownParameterError,
)
from row_graph.core.params import parse_sql
from row_graph.mapping.cursor import ResultCursor
from row_graph.mapping.descriptor import describe
from row_graph.mapping.mapper import RowMapper
from row_graph.proxy.factory import raw_value

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Query:
    """A statement bound to an open session.

    Args:
        sql: Statement with ``:name`` and/or ``?`` placeholders.
        session: The session that executes it.

    Raises:
        DuplicateParameterError: If a named placeholder occurs twice.
    """

    def __init__(self, sql: str, session: Any) -> None:
        self._parsed = parse_sql(sql)
        self._session = session
        self._conversions: ConversionRegistry = session.conversions
        self._values: dict[int, Any] = {}
        self._values_used = False
        self._batches: list[tuple[Any, ...]] = []
        self.affected_rows = 0

    @property
    def sql(self) -> str:
        return self._parsed.sql

    @property
    def parameter_labels(self) -> tuple[str, ...]:
        return self._parsed.labels

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def set_parameter(self, key: int | str, value: Any) -> Query:
        """Set a value by 1-based placeholder position or by name."""
        labels = self._parsed.labels
        if isinstance(key, int):
            if not 1 <= key <= len(labels):
                raise ParameterIndexError(self.sql, key, len(labels))
            position = key - 1
        else:
            found = self._parsed.index_of(key)
            if found is None:
                raise UnknownParameterError(self.sql, key)
            position = found
        self._values[position] = value
        self._values_used = False
        return self

    def bind(self, entity: Any) -> Query:
        """Add a batch whose values come from *entity*'s fields.

        Placeholders are matched to fields by field name, then column name.
        Placeholders no field matches take values set with
        ``set_parameter``. Deferred fields are read without loading them.
        """
        descriptor = describe(type(entity))
        values = dict(self._values)
        for position, label in enumerate(self._parsed.labels):
            f = descriptor.field_for_parameter(label)
            if f is not None:
                values[position] = raw_value(entity, f.name)
        self._values_used = True
        self._batches.append(self._complete(values))
        return self

    def add_batch(self) -> Query:
        """Close the values set so far into a batch and start a new one."""
        self._batches.append(self._complete(self._values))
        self._values = {}
        self._values_used = False
        return self

    def _complete(self, values: dict[int, Any]) -> tuple[Any, ...]:
        labels = self._parsed.labels
        missing = [label for position, label in enumerate(labels) if position not in values]
        if missing:
            raise MissingParameterError(self.sql, missing)
        return tuple(self._conversions.write(values[position]) for position in range(len(labels)))

    def _pending_batches(self) -> list[tuple[Any, ...]]:
        batches = list(self._batches)
        if (self._values and not self._values_used) or not batches:
            batches.append(self._complete(self._values))
        return batches

    # ------------------------------------------------------------------
    # Conversion overrides
    # ------------------------------------------------------------------

    def set_reader(self, type_: type, reader: Reader) -> Query:
        """Override the column reader for *type_* in this query only."""
        self._conversions = self._conversions.copy().register_reader(type_, reader)
        return self

    def set_writer(self, type_: type, writer: Writer) -> Query:
        """Override the parameter writer for *type_* in this query only."""
        self._conversions = self._conversions.copy().register_writer(type_, writer)
        return self

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _execute(self, batch: tuple[Any, ...]) -> Any:
        session = self._session
        session.check_open("execute a query")
        sql = self._parsed.render(session.adapter.paramstyle)
        logger.debug("Executing %s with parameters %r", sql, batch)
        try:
            return session.adapter.execute(session.connection, sql, batch)
        except RowGraphError:
            raise
        except Exception as e:
            raise ExecutionError(f"Failed to execute '{self.sql}': {e}") from e

    def stream_as(self, target_type: type[T]) -> Iterator[T]:
        """Execute now and map rows to *target_type* as they are consumed.

        Raises:
            ParameterBindingError: If more than one batch was added.
        """
        batches = self._pending_batches()
        if len(batches) > 1:
            raise ParameterBindingError(
                self.sql, f"cannot run a query with {len(batches)} parameter batches"
            )
        cursor = self._execute(batches[0])
        result = ResultCursor(cursor, self._session.fetch_size)
        return RowMapper(target_type, self._conversions, self._session).stream(result)

    def fetch_as(self, target_type: type[T]) -> list[T]:
        return list(self.stream_as(target_type))

    def fetch(self) -> list[dict[str, Any]]:
        """Rows as ``{label: value}`` dicts."""
        return self.fetch_as(dict)

    def get_unique_result_as(self, target_type: type[T]) -> T:
        """The single result of the query.

        Raises:
            NoResultsError: If nothing matched.
            NonUniqueResultError: If more than one result was produced.
        """
        results = self.fetch_as(target_type)
        if not results:
            raise NoResultsError(self.sql)
        if len(results) > 1:
            raise NonUniqueResultError(self.sql, len(results))
        return results[0]

    def batch_process(
        self, target_type: type[T], batch_size: int, consumer: Callable[[list[T]], Any]
    ) -> None:
        """Feed results to *consumer* in lists of at most *batch_size*."""
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        chunk: list[T] = []
        for item in self.stream_as(target_type):
            chunk.append(item)
            if len(chunk) == batch_size:
                consumer(chunk)
                chunk = []
        if chunk:
            consumer(chunk)

    def execute_update(self) -> list[Any]:
        """Run every batch and return the generated keys, in order.

        ``affected_rows`` holds the total row count reported by the driver.
        """
        adapter = self._session.adapter
        keys: list[Any] = []
        affected = 0
        for batch in self._pending_batches():
            cursor = self._execute(batch)
            try:
                keys.extend(adapter.generated_keys(cursor, self.sql))
            except RowGraphError:
                raise
            except Exception as e:
                raise ExecutionError(f"Failed to read generated keys of '{self.sql}': {e}") from e
            if cursor.rowcount is not None and cursor.rowcount > 0:
                affected += cursor.rowcount
        self.affected_rows = affected
        self._batches = []
        self._values_used = True
        logger.debug("Updated %d rows, %d generated keys", affected, len(keys))
        return keys
