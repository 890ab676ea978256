"""SQL placeholder parsing.

Recognizes ``:name`` and ``?`` placeholders (mixed freely) and rewrites them
to the driver's positional paramstyle. String literals, quoted identifiers,
``--`` and ``/* */`` comments and PostgreSQL ``::typecast`` syntax are left
untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

from row_graph.core.exceptions import DuplicateParameterError

# Matches :name (but not ::typecast or mid-word colons) or a bare ?
_PARAM_PATTERN = re.compile(r"(?<![:\w]):([a-zA-Z_]\w*)|\?")

# Matches single-quoted string literals, double-quoted identifiers and comments
_VERBATIM_PATTERN = re.compile(
    r"'(?:[^'\\]|\\.|'')*'|\"(?:[^\"]|\"\")*\"|--[^\n]*|/\*.*?\*/",
    re.DOTALL,
)

_MARKERS = {"qmark": "?", "format": "%s"}


@dataclass(frozen=True)
class ParsedSQL:
    """A statement split around its placeholders.

    ``labels`` holds one entry per placeholder in statement order: the name
    for ``:name`` placeholders, the 1-based position (as a string) for ``?``.
    ``segments`` always has ``len(labels) + 1`` entries.
    """

    sql: str
    segments: tuple[str, ...]
    labels: tuple[str, ...]

    @property
    def names(self) -> tuple[str, ...]:
        """Named placeholders only, in statement order."""
        return tuple(label for label in self.labels if not label.isdigit())

    def index_of(self, label: str) -> int | None:
        try:
            return self.labels.index(label)
        except ValueError:
            return None

    def render(self, paramstyle: str) -> str:
        """Rebuild the statement with positional driver markers."""
        marker = _MARKERS.get(paramstyle)
        if marker is None:
            raise ValueError(f"Unsupported paramstyle: {paramstyle}")
        segments = self.segments
        if paramstyle == "format":
            segments = tuple(segment.replace("%", "%%") for segment in segments)
        parts = [segments[0]]
        for segment in segments[1:]:
            parts.append(marker)
            parts.append(segment)
        return "".join(parts)


@lru_cache(maxsize=256)
def parse_sql(sql: str) -> ParsedSQL:
    """Split *sql* into literal segments and placeholder labels.

    Raises:
        DuplicateParameterError: If a named placeholder occurs twice.
    """
    segments: list[str] = []
    labels: list[str] = []
    current: list[str] = []
    last_end = 0

    def scan(code: str) -> None:
        pos = 0
        for match in _PARAM_PATTERN.finditer(code):
            current.append(code[pos : match.start()])
            segments.append("".join(current))
            current.clear()
            name = match.group(1)
            if name is None:
                labels.append(str(len(labels) + 1))
            elif name in labels:
                raise DuplicateParameterError(sql, name)
            else:
                labels.append(name)
            pos = match.end()
        current.append(code[pos:])

    for match in _VERBATIM_PATTERN.finditer(sql):
        start, end = match.span()
        if start > last_end:
            scan(sql[last_end:start])
        # Keep quoted text and comments as-is
        current.append(match.group())
        last_end = end

    if last_end < len(sql):
        scan(sql[last_end:])

    segments.append("".join(current))
    return ParsedSQL(sql=sql, segments=tuple(segments), labels=tuple(labels))
