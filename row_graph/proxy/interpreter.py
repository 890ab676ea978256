"""Interpretation of query results by declared return type.

Shared by lazy-loaded fields and repository query methods: the annotation
decides whether a query yields one entity, a scalar, a collection or a
keyed mapping.
"""

from __future__ import annotations

from typing import Any

from row_graph.core.exceptions import ConfigurationError, NonUniqueResultError
from row_graph.mapping.descriptor import (
    add_member,
    collection_shape,
    concrete_class,
    describe,
    split_annotation,
)


def interpret(query: Any, return_type: Any, *, map_key: str | None = None, target: str) -> Any:
    """Execute *query* and shape its results as *return_type*.

    A single-valued type yields ``None`` for no rows and raises
    NonUniqueResultError for more than one. Mapping types are keyed by the
    *map_key* field of each related entity.

    Raises:
        ConfigurationError: If the return type cannot be produced.
        NonUniqueResultError: If a single value was declared and several
            rows matched.
    """
    return_type, _ = split_annotation(return_type)
    shape = collection_shape(return_type)

    if shape is None:
        if concrete_class(return_type) is None:
            raise ConfigurationError(target, f"cannot load a result of type {return_type!r}")
        results = query.fetch_as(return_type)
        if not results:
            return None
        if len(results) > 1:
            raise NonUniqueResultError(query.sql, len(results))
        return results[0]

    if shape.element_type is None:
        raise ConfigurationError(
            target, f"{return_type!r} does not name a concrete element type"
        )

    if shape.is_mapping:
        if not map_key:
            raise ConfigurationError(target, "a mapping result requires map_key")
        if describe(shape.element_type).field(map_key) is None:
            raise ConfigurationError(
                target, f"map_key '{map_key}' is not a field of {shape.element_type.__name__}"
            )
        mapping = shape.factory()
        for entity in query.stream_as(shape.element_type):
            key = getattr(entity, map_key, None)
            if key is None:
                raise ConfigurationError(
                    target, f"map_key '{map_key}' is NULL for a {shape.element_type.__name__}"
                )
            mapping[key] = entity
        return mapping

    collection = shape.factory()
    for item in query.stream_as(shape.element_type):
        add_member(collection, item)
    return collection
