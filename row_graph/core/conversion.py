"""Scalar conversion registry.

Readers turn a raw column value into a field type; writers turn a bound
parameter into something the driver accepts. A type with a reader is a
*scalar*: it is mapped from a single column rather than reflected as an
entity.
"""

from __future__ import annotations

import datetime as dt
import types
import uuid
from collections.abc import Callable
from decimal import Decimal
from enum import Enum
from typing import Any

from row_graph.core.exceptions import ConversionError

Reader = Callable[[Any, type], Any]
Writer = Callable[[Any], Any]

_TRUE_STRINGS = frozenset({"1", "t", "true", "y", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "f", "false", "n", "no", "off"})


def _read_bool(value: Any, _: type) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(value)
    return bool(value)


def _read_int(value: Any, _: type) -> int:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(value)
    return int(value)


def _read_date(value: Any, _: type) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(str(value)[:10])


def _read_datetime(value: Any, _: type) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    return dt.datetime.fromisoformat(str(value))


def _read_time(value: Any, _: type) -> dt.time:
    if isinstance(value, dt.time):
        return value
    if isinstance(value, dt.timedelta):
        return (dt.datetime.min + value).time()
    return dt.time.fromisoformat(str(value))


def _read_bytes(value: Any, _: type) -> bytes:
    if isinstance(value, str):
        return value.encode()
    return bytes(value)


def _read_enum(value: Any, enum_type: type) -> Enum:
    if isinstance(value, enum_type):
        return value  # type: ignore[return-value]
    if isinstance(value, str) and value in enum_type.__members__:
        return enum_type.__members__[value]  # type: ignore[attr-defined, no-any-return]
    return enum_type(value)  # type: ignore[call-arg, no-any-return]


def _is_class(type_: Any) -> bool:
    """True for real classes; False for Any, object and parameterized generics."""
    return (
        isinstance(type_, type)
        and not isinstance(type_, types.GenericAlias)
        and type_ is not Any
        and type_ is not object
    )


def _lookup_order(type_: type) -> tuple[type, ...]:
    """MRO used for converter lookup; enums skip their int/str mixins."""
    if issubclass(type_, Enum):
        return tuple(klass for klass in type_.__mro__ if issubclass(klass, Enum))
    return type_.__mro__


_DEFAULT_READERS: dict[type, Reader] = {
    str: lambda value, _: value if isinstance(value, str) else str(value),
    int: _read_int,
    float: lambda value, _: float(value),
    bool: _read_bool,
    Decimal: lambda value, _: value if isinstance(value, Decimal) else Decimal(str(value)),
    bytes: _read_bytes,
    dt.date: _read_date,
    dt.datetime: _read_datetime,
    dt.time: _read_time,
    uuid.UUID: lambda value, _: value if isinstance(value, uuid.UUID) else uuid.UUID(str(value)),
    Enum: _read_enum,
}

_DEFAULT_WRITERS: dict[type, Writer] = {
    Enum: lambda value: value.name,
    dt.date: lambda value: value.isoformat(),
    dt.time: lambda value: value.isoformat(),
    Decimal: str,
    uuid.UUID: str,
}


class ConversionRegistry:
    """Per-type reader and writer table.

    Lookups walk the type's MRO so ``Enum`` covers every enum class, including
    ``IntEnum`` and ``StrEnum`` ahead of their ``int``/``str`` bases, and
    ``date`` covers ``datetime`` writers. Each registry is an independent
    copy of the defaults.
    """

    def __init__(self) -> None:
        self._readers: dict[type, Reader] = dict(_DEFAULT_READERS)
        self._writers: dict[type, Writer] = dict(_DEFAULT_WRITERS)

    def register_reader(self, type_: type, reader: Reader) -> ConversionRegistry:
        self._readers[type_] = reader
        return self

    def register_writer(self, type_: type, writer: Writer) -> ConversionRegistry:
        self._writers[type_] = writer
        return self

    def find_reader(self, type_: Any) -> Reader | None:
        if not _is_class(type_):
            return None
        for klass in _lookup_order(type_):
            if klass in self._readers:
                return self._readers[klass]
        return None

    def is_scalar(self, type_: Any) -> bool:
        return self.find_reader(type_) is not None

    def read(self, value: Any, type_: Any, target: str) -> Any:
        """Convert a raw column *value* to *type_*.

        NULL stays ``None``. Values for non-class annotations (``Any``,
        generics) pass through. A class with no reader accepts only its own
        instances.

        Raises:
            ConversionError: If the value cannot be converted.
        """
        if value is None:
            return None
        reader = self.find_reader(type_)
        if reader is None:
            if not _is_class(type_) or isinstance(value, type_):
                return value
            raise ConversionError(target, getattr(type_, "__name__", str(type_)), value)
        try:
            return reader(value, type_)
        except (ValueError, TypeError, KeyError, ArithmeticError) as e:
            raise ConversionError(target, type_.__name__, value) from e

    def write(self, value: Any) -> Any:
        """Convert a parameter value for the driver."""
        if value is None:
            return None
        for klass in _lookup_order(type(value)):
            writer = self._writers.get(klass)
            if writer is not None:
                return writer(value)
        return value

    def copy(self) -> ConversionRegistry:
        """An independent registry starting from this one's tables."""
        clone = ConversionRegistry()
        clone._readers = dict(self._readers)
        clone._writers = dict(self._writers)
        return clone
