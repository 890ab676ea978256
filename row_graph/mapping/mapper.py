"""Row-to-entity mapping engine.

Single pass over a result cursor, deduplicating entities repeated by joins
through a per-pass identity map and assembling single and multi relations
from the same row.

A keyed entity seen again keeps the values of the row that first produced
it ("first row wins"); later rows only contribute new relation members.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Hashable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from row_graph.core.conversion import ConversionRegistry
from row_graph.core.exceptions import (
    EntityConstructionError,
    MappingError,
    RowGraphError,
)
from row_graph.mapping.cursor import ResultCursor
from row_graph.mapping.descriptor import (
    EntityDescriptor,
    FieldDescriptor,
    add_member,
    describe,
)

T = TypeVar("T")


def assign(instance: Any, name: str, value: Any) -> None:
    """Set an attribute, writing through frozen dataclasses."""
    try:
        setattr(instance, name, value)
    except dataclasses.FrozenInstanceError:
        object.__setattr__(instance, name, value)


@dataclass(frozen=True)
class _TypePlan:
    """A descriptor resolved against the columns of one result."""

    descriptor: EntityDescriptor
    key_index: int | None
    scalars: tuple[tuple[FieldDescriptor, int], ...]


class _MappingPass:
    """State of one mapping pass: identity map, plans and relation members."""

    def __init__(self, cursor: ResultCursor, conversions: ConversionRegistry, session: Any) -> None:
        self._cursor = cursor
        self._conversions = conversions
        self._session = session
        self._plans: dict[type, _TypePlan] = {}
        self._identity: dict[tuple[type, Any], Any] = {}
        # (parent token, field name) -> {child token: child}
        self._members: dict[tuple[Hashable, str], dict[Hashable, Any]] = {}
        self._emitted: set[Hashable] = set()

    def _plan(self, cls: type) -> _TypePlan:
        plan = self._plans.get(cls)
        if plan is None:
            descriptor = describe(cls)
            key_index = None
            if descriptor.key_field is not None:
                key_index = self._cursor.index_of(descriptor.key_field.column)
            scalars = tuple(
                (f, index)
                for f in descriptor.scalar_fields
                if (index := self._cursor.index_of(f.column)) is not None
            )
            plan = _TypePlan(descriptor, key_index, scalars)
            self._plans[cls] = plan
        return plan

    def _read(self, cls: type, f: FieldDescriptor, raw: Any) -> Any:
        return self._conversions.read(raw, f.field_type, f"{cls.__name__}.{f.name}")

    def _construct(self, descriptor: EntityDescriptor) -> Any:
        cls = descriptor.entity_type
        try:
            if descriptor.is_proxied and self._session is not None:
                from row_graph.proxy.factory import default_factory

                return default_factory.create(cls, self._session)
            return cls()
        except RowGraphError:
            raise
        except Exception as e:
            raise EntityConstructionError(cls.__name__, str(e)) from e

    def root(self, row: Any, cls: type) -> Any | None:
        """The root entity of *row*, or ``None`` if it was already emitted."""
        instance, token = self._map(row, cls, frozenset())
        if instance is None:
            return None
        # Unkeyed roots are always fresh instances
        if isinstance(token, tuple):
            if token in self._emitted:
                return None
            self._emitted.add(token)
        return instance

    def _map(self, row: Any, cls: type, visited: frozenset[type]) -> tuple[Any, Hashable]:
        plan = self._plan(cls)
        descriptor = plan.descriptor

        key = None
        instance = None
        if plan.key_index is not None:
            raw_key = row[plan.key_index]
            if raw_key is not None:
                key = self._read(cls, descriptor.key_field, raw_key)  # type: ignore[arg-type]
                instance = self._identity.get((cls, key))
        fresh = instance is None

        values: dict[str, Any] = {}
        if fresh:
            for f, index in plan.scalars:
                raw = row[index]
                if raw is not None:
                    values[f.name] = self._read(cls, f, raw)

        frame = visited | {cls}
        singles: list[tuple[FieldDescriptor, Any]] = []
        for f in descriptor.single_relations:
            if f.target_type in frame:
                continue
            child, _ = self._map(row, f.target_type, frame)  # type: ignore[arg-type]
            if child is not None:
                singles.append((f, child))
        multis: list[tuple[FieldDescriptor, Any, Hashable]] = []
        for f in descriptor.multi_relations:
            if f.target_type in frame:
                continue
            child, child_token = self._map(row, f.target_type, frame)  # type: ignore[arg-type]
            if child is not None:
                multis.append((f, child, child_token))

        if fresh:
            if not values and not singles and not multis:
                # Outer-join miss: nothing of this entity is in the row
                return None, None
            instance = self._construct(descriptor)
            for name, value in values.items():
                assign(instance, name, value)
            if key is not None:
                self._identity[(cls, key)] = instance

        token: Hashable = (cls, key) if key is not None else id(instance)

        for f, child in singles:
            if fresh or getattr(instance, f.name, None) is None:
                assign(instance, f.name, child)

        for f, child, child_token in multis:
            collection = getattr(instance, f.name, None)
            if collection is None:
                collection = f.collection.factory()  # type: ignore[union-attr]
                assign(instance, f.name, collection)
            if key is not None:
                members = self._members.setdefault((token, f.name), {})
            else:
                members = {}
            if child_token in members:
                continue
            members[child_token] = child
            add_member(collection, child)

        return instance, token


class RowMapper(Generic[T]):
    """Maps a result cursor to a stream of *target_type* values.

    Entity targets are assembled into deduplicated graphs. Scalar targets
    (types with a registered reader) take the only column of each row, and
    ``dict`` targets yield one ``{label: value}`` mapping per row.

    Args:
        target_type: Entity class, scalar type or ``dict``.
        conversions: Registry used to convert column values.
        session: Session that lazy-loading proxies bind to.
    """

    def __init__(
        self,
        target_type: type[T],
        conversions: ConversionRegistry,
        session: Any = None,
    ) -> None:
        self._target_type = target_type
        self._conversions = conversions
        self._session = session

    def stream(self, cursor: ResultCursor) -> Iterator[T]:
        """Lazily map *cursor*, in cursor order."""
        target = self._target_type
        if target is dict:
            return self._dicts(cursor)  # type: ignore[return-value]
        if self._conversions.is_scalar(target):
            return self._scalars(cursor)
        describe(target)
        return self._entities(cursor)

    def map_all(self, cursor: ResultCursor) -> list[T]:
        return list(self.stream(cursor))

    def _dicts(self, cursor: ResultCursor) -> Iterator[dict[str, Any]]:
        for row in cursor:
            mapped: dict[str, Any] = {}
            for label, value in zip(cursor.labels, row):
                mapped.setdefault(label, value)
            yield mapped

    def _scalars(self, cursor: ResultCursor) -> Iterator[T]:
        if len(cursor.labels) != 1:
            raise MappingError(
                f"Cannot map {len(cursor.labels)} columns {list(cursor.labels)} "
                f"to scalar type {self._target_type.__name__}"
            )
        target = f"{self._target_type.__name__} result"
        for row in cursor:
            yield self._conversions.read(row[0], self._target_type, target)

    def _entities(self, cursor: ResultCursor) -> Iterator[T]:
        mapping_pass = _MappingPass(cursor, self._conversions, self._session)
        for row in cursor:
            entity = mapping_pass.root(row, self._target_type)
            if entity is not None:
                yield entity
