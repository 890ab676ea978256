"""Entity type descriptors.

Frozen dataclasses describing how an entity class maps to result columns.
A descriptor is built once per class by reflecting its annotations and is
cached process-wide; the mapping engine never re-inspects a class per row.
"""

from __future__ import annotations

import collections
import collections.abc as abc
import dataclasses
import logging
import threading
import types
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Union

from row_graph.core.enums import FieldKind
from row_graph.core.exceptions import ConfigurationError
from row_graph.mapping.annotations import (
    LOAD_QUERY_ATTRIBUTE,
    Column,
    Key,
    LoadQuery,
    MultiRelation,
    SingleRelation,
)

logger = logging.getLogger(__name__)

PROXY_TARGET_ATTRIBUTE = "__row_graph_entity__"

# Declared collection interface → concrete implementation
_SEQUENCE_TYPES: dict[Any, Callable[[], Any]] = {
    list: list,
    abc.Sequence: list,
    abc.MutableSequence: list,
    abc.Collection: list,
    abc.Iterable: list,
    set: set,
    abc.Set: set,
    abc.MutableSet: set,
    collections.deque: collections.deque,
}

_MAPPING_TYPES: dict[Any, Callable[[], Any]] = {
    dict: dict,
    abc.Mapping: dict,
    abc.MutableMapping: dict,
}


@dataclass(frozen=True)
class CollectionShape:
    """A collection annotation resolved to a factory and an element type.

    ``element_type`` is ``None`` when the annotation does not name a
    concrete class (``list``, ``list[Any]``).
    """

    factory: Callable[[], Any]
    element_type: type | None
    is_mapping: bool = False


@dataclass(frozen=True)
class FieldDescriptor:
    """Mapping of one entity field."""

    name: str
    column: str
    kind: FieldKind
    field_type: Any
    target_type: type | None = None
    collection: CollectionShape | None = None
    load_query: LoadQuery | None = None

    @property
    def deferred(self) -> bool:
        return self.load_query is not None


@dataclass(frozen=True)
class AccessorDescriptor:
    """An accessor method that lazily loads its backing field."""

    name: str
    field: str
    load_query: LoadQuery
    return_type: Any


@dataclass(frozen=True)
class EntityDescriptor:
    """Compiled, validated mapping of an entity class."""

    entity_type: type
    fields: tuple[FieldDescriptor, ...]
    key_field: FieldDescriptor | None = None
    accessors: tuple[AccessorDescriptor, ...] = ()
    _by_name: dict[str, FieldDescriptor] = dataclasses.field(
        default_factory=dict, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._by_name.update((f.name, f) for f in self.fields)

    @property
    def scalar_fields(self) -> tuple[FieldDescriptor, ...]:
        return self._mapped(FieldKind.SCALAR)

    @property
    def single_relations(self) -> tuple[FieldDescriptor, ...]:
        return self._mapped(FieldKind.SINGLE_RELATION)

    @property
    def multi_relations(self) -> tuple[FieldDescriptor, ...]:
        return self._mapped(FieldKind.MULTI_RELATION)

    @property
    def deferred_fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.deferred)

    @property
    def is_proxied(self) -> bool:
        """True if instances must be lazy-loading proxies."""
        return bool(self.accessors) or any(f.deferred for f in self.fields)

    def field(self, name: str) -> FieldDescriptor | None:
        return self._by_name.get(name)

    def field_for_parameter(self, label: str) -> FieldDescriptor | None:
        """Field bound to a ``:label`` placeholder: by field name, then column."""
        found = self._by_name.get(label)
        if found is not None:
            return found
        for f in self.fields:
            if f.column == label:
                return f
        return None

    def _mapped(self, kind: FieldKind) -> tuple[FieldDescriptor, ...]:
        accessor_fields = {a.field for a in self.accessors}
        return tuple(
            f
            for f in self.fields
            if f.kind is kind and not f.deferred and f.name not in accessor_fields
        )


# ---------------------------------------------------------------------------
# Annotation helpers
# ---------------------------------------------------------------------------


def unwrap_optional(annotation: Any) -> Any:
    """``X | None`` → ``X``; anything else unchanged."""
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def split_annotation(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    """Strip ``Annotated`` and ``Optional`` layers, collecting the markers."""
    markers: list[Any] = []
    annotation = unwrap_optional(annotation)
    while typing.get_origin(annotation) is Annotated:
        markers.extend(annotation.__metadata__)
        annotation = unwrap_optional(annotation.__origin__)
    return annotation, tuple(markers)


def concrete_class(annotation: Any) -> type | None:
    """*annotation* if it is a real class, else None (Any, object, generics)."""
    if (
        isinstance(annotation, type)
        and not isinstance(annotation, types.GenericAlias)
        and annotation is not Any
        and annotation is not object
    ):
        return annotation
    return None


def collection_shape(annotation: Any) -> CollectionShape | None:
    """Resolve a collection or mapping annotation, or ``None`` if it is neither."""
    annotation, _ = split_annotation(annotation)
    origin = typing.get_origin(annotation) or annotation
    args = typing.get_args(annotation)
    if not isinstance(origin, type):
        return None

    if origin in _MAPPING_TYPES or (
        issubclass(origin, abc.MutableMapping) and origin not in _MAPPING_TYPES
    ):
        factory = _MAPPING_TYPES.get(origin, origin)
        value_type = concrete_class(split_annotation(args[1])[0]) if len(args) == 2 else None
        return CollectionShape(factory=factory, element_type=value_type, is_mapping=True)

    if origin in (str, bytes, bytearray):
        return None
    if origin in _SEQUENCE_TYPES:
        factory = _SEQUENCE_TYPES[origin]
    elif issubclass(origin, (abc.MutableSequence, abc.MutableSet)):
        factory = origin
    else:
        return None
    element_type = concrete_class(split_annotation(args[0])[0]) if args else None
    return CollectionShape(factory=factory, element_type=element_type)


def add_member(collection: Any, item: Any) -> None:
    """Append to a sequence or add to a set."""
    if isinstance(collection, abc.MutableSet):
        collection.add(item)
    else:
        collection.append(item)


def _is_pydantic_model(cls: type) -> bool:
    return hasattr(cls, "model_fields") and hasattr(cls, "model_validate")


# ---------------------------------------------------------------------------
# Descriptor construction
# ---------------------------------------------------------------------------


def _field_names(cls: type, hints: dict[str, Any]) -> list[str]:
    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]
    if _is_pydantic_model(cls):
        return list(cls.model_fields.keys())  # type: ignore[attr-defined]
    return [
        name
        for name, hint in hints.items()
        if not name.startswith("_") and typing.get_origin(hint) is not ClassVar
    ]


def _build_field(cls: type, name: str, annotation: Any) -> FieldDescriptor:
    target = f"{cls.__name__}.{name}"
    field_type, markers = split_annotation(annotation)

    column = name
    kind = FieldKind.SCALAR
    load = None
    for marker in markers:
        if isinstance(marker, Column):
            column = marker.name
        elif isinstance(marker, SingleRelation):
            kind = FieldKind.SINGLE_RELATION
        elif isinstance(marker, MultiRelation):
            kind = FieldKind.MULTI_RELATION
        elif isinstance(marker, LoadQuery):
            load = marker

    if load is not None:
        # Shape is validated on first access, once the result type matters
        return FieldDescriptor(name, column, kind, field_type, load_query=load)

    if kind is FieldKind.SINGLE_RELATION:
        related = concrete_class(field_type)
        if related is None:
            raise ConfigurationError(target, f"relation type {field_type!r} is not a class")
        return FieldDescriptor(name, column, kind, field_type, target_type=related)

    if kind is FieldKind.MULTI_RELATION:
        shape = collection_shape(field_type)
        if shape is None or shape.is_mapping:
            raise ConfigurationError(
                target, f"multi relation must be declared as a collection, got {field_type!r}"
            )
        if shape.element_type is None:
            raise ConfigurationError(
                target, f"collection {field_type!r} does not name a concrete element type"
            )
        return FieldDescriptor(
            name,
            column,
            kind,
            field_type,
            target_type=shape.element_type,
            collection=shape,
        )

    return FieldDescriptor(name, column, kind, field_type)


def _build_accessors(
    cls: type, fields: dict[str, FieldDescriptor]
) -> tuple[AccessorDescriptor, ...]:
    accessors: dict[str, AccessorDescriptor] = {}
    for klass in reversed(cls.__mro__):
        for attr_name, attr in vars(klass).items():
            load = getattr(attr, LOAD_QUERY_ATTRIBUTE, None)
            if not isinstance(load, LoadQuery) or not callable(attr):
                continue
            target = f"{cls.__name__}.{attr_name}()"
            if load.field:
                field_name = load.field
            elif attr_name.startswith("get_"):
                field_name = attr_name[len("get_") :]
            else:
                raise ConfigurationError(
                    target, "cannot determine the field to load; pass field= or name it get_<field>"
                )
            if field_name not in fields:
                raise ConfigurationError(target, f"backing field '{field_name}' does not exist")

            try:
                return_type = typing.get_type_hints(attr, include_extras=True).get("return")
            except (NameError, TypeError) as e:
                raise ConfigurationError(target, f"unresolvable return annotation: {e}") from e
            if return_type is None or return_type is type(None):
                return_type = fields[field_name].field_type
            accessors[attr_name] = AccessorDescriptor(attr_name, field_name, load, return_type)
    return tuple(accessors.values())


def _type_hints(cls: type) -> dict[str, Any]:
    if _is_pydantic_model(cls):
        # Resolved by pydantic; markers are kept as field metadata
        return {
            name: Annotated[(info.annotation, *info.metadata)] if info.metadata else info.annotation
            for name, info in cls.model_fields.items()  # type: ignore[attr-defined]
        }
    return typing.get_type_hints(cls, include_extras=True)


def _build(cls: type) -> EntityDescriptor:
    try:
        hints = _type_hints(cls)
    except (NameError, TypeError) as e:
        raise ConfigurationError(cls.__name__, f"unresolvable type annotation: {e}") from e

    fields: dict[str, FieldDescriptor] = {}
    key_field: FieldDescriptor | None = None
    for name in _field_names(cls, hints):
        descriptor = _build_field(cls, name, hints.get(name, Any))
        fields[name] = descriptor
        _, markers = split_annotation(hints.get(name, Any))
        if any(isinstance(m, Key) for m in markers):
            if key_field is not None:
                raise ConfigurationError(
                    cls.__name__, f"more than one key field ('{key_field.name}', '{name}')"
                )
            key_field = descriptor

    accessors = _build_accessors(cls, fields)
    entity = EntityDescriptor(
        entity_type=cls,
        fields=tuple(fields.values()),
        key_field=key_field,
        accessors=accessors,
    )
    if entity.is_proxied and _is_pydantic_model(cls):
        raise ConfigurationError(
            cls.__name__, "lazy-loaded fields require a dataclass or plain class"
        )
    return entity


_DESCRIPTORS: dict[type, EntityDescriptor] = {}
_LOCK = threading.Lock()


def entity_type_of(cls: type) -> type:
    """The declared entity class behind a generated proxy class."""
    target = cls.__dict__.get(PROXY_TARGET_ATTRIBUTE)
    return target if target is not None else cls


def _build_graph(root: type) -> EntityDescriptor:
    """Build *root* and every entity reachable through its relations.

    Nothing is cached unless the whole graph is valid. Caller holds _LOCK.
    """
    built: dict[type, EntityDescriptor] = {}
    pending = [root]
    while pending:
        cls = pending.pop()
        if cls in built or cls in _DESCRIPTORS:
            continue
        descriptor = _build(cls)
        built[cls] = descriptor
        pending.extend(
            f.target_type
            for f in (*descriptor.single_relations, *descriptor.multi_relations)
            if f.target_type is not None
        )
    for cls, descriptor in built.items():
        _DESCRIPTORS[cls] = descriptor
        logger.debug(
            "Described %s: %d fields, key=%s",
            cls.__name__,
            len(descriptor.fields),
            descriptor.key_field.name if descriptor.key_field else None,
        )
    return built[root]


def describe(cls: type) -> EntityDescriptor:
    """Return the cached descriptor for *cls*, building it on first use.

    Related entity types are described along with it, so a bad declaration
    anywhere in the relation graph fails here rather than mid-result.
    Concurrent first calls for the same class build it once; every caller
    receives the same descriptor object.

    Raises:
        ConfigurationError: If the class or a related class is invalid.
    """
    cls = entity_type_of(cls)
    descriptor = _DESCRIPTORS.get(cls)
    if descriptor is not None:
        return descriptor
    with _LOCK:
        descriptor = _DESCRIPTORS.get(cls)
        if descriptor is None:
            descriptor = _build_graph(cls)
    return descriptor
