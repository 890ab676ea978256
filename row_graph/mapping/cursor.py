"""DB-API cursor wrapper used by the mapping engine."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

DEFAULT_FETCH_SIZE = 100


class ResultCursor:
    """A DB-API cursor viewed as a lazy sequence of rows.

    Column labels are read from ``cursor.description`` once. Label lookup is
    exact first, then case-insensitive; a label repeated in the result
    resolves to its first occurrence.
    """

    def __init__(self, cursor: Any, fetch_size: int = DEFAULT_FETCH_SIZE) -> None:
        self._cursor = cursor
        self._fetch_size = max(1, fetch_size)
        description = cursor.description or ()
        self.labels: tuple[str, ...] = tuple(str(d[0]) for d in description)

        self._exact: dict[str, int] = {}
        self._folded: dict[str, int] = {}
        for index, label in enumerate(self.labels):
            self._exact.setdefault(label, index)
            self._folded.setdefault(label.lower(), index)

    def index_of(self, label: str) -> int | None:
        """Position of the column labelled *label*, or ``None`` if absent."""
        index = self._exact.get(label)
        if index is None:
            index = self._folded.get(label.lower())
        return index

    def has_column(self, label: str) -> bool:
        return self.index_of(label) is not None

    def rows(self) -> Iterator[Sequence[Any]]:
        """Yield rows in cursor order, closing the cursor when exhausted."""
        try:
            if not self.labels:
                return
            while True:
                batch = self._cursor.fetchmany(self._fetch_size)
                if not batch:
                    break
                for row in batch:
                    if isinstance(row, Mapping):
                        # dict-row factories (psycopg dict_row, MySQL dictionary cursors)
                        row = tuple(row.values())
                    yield row
        finally:
            close = getattr(self._cursor, "close", None)
            if close is not None:
                close()

    def __iter__(self) -> Iterator[Sequence[Any]]:
        return self.rows()
