"""Lazy-loading proxy generation.

A proxy class is a subclass of the entity generated once per entity type.
Deferred fields become data descriptors and ``@load_query`` accessors are
wrapped; on first access either runs the declared query on the session the
proxy was created in, binding parameters from the entity's own fields.
"""

from __future__ import annotations

import functools
import inspect
import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from row_graph.core.exceptions import SessionClosedError
from row_graph.mapping.annotations import LoadQuery
from row_graph.mapping.descriptor import (
    PROXY_TARGET_ATTRIBUTE,
    AccessorDescriptor,
    describe,
    entity_type_of,
)
from row_graph.proxy.interpreter import interpret

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATE_ATTRIBUTE = "__row_graph_state__"


class _ProxyState:
    """Per-instance session binding and set of resolved field names."""

    __slots__ = ("session", "loaded")

    def __init__(self, session: Any) -> None:
        self.session = session
        self.loaded: set[str] = set()


def _state(instance: Any) -> _ProxyState | None:
    return getattr(instance, "__dict__", {}).get(STATE_ATTRIBUTE)


def _load(instance: Any, state: _ProxyState, load: LoadQuery, return_type: Any, target: str) -> Any:
    session = state.session
    if not session.is_open:
        raise SessionClosedError(f"Cannot load {target}: the session that created it is closed")
    logger.debug("Lazy loading %s", target)
    query = session.create_query(load.sql).bind(instance)
    return interpret(query, return_type, map_key=load.map_key, target=target)


class LazyAttribute:
    """Data descriptor for a field loaded on first read.

    Assigning the attribute stores the value but leaves the field
    unresolved, so the next read still runs the query.
    """

    def __init__(self, name: str, load: LoadQuery, return_type: Any, target: str) -> None:
        self.name = name
        self.load = load
        self.return_type = return_type
        self.target = target

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        state = _state(instance)
        if state is None or self.name in state.loaded:
            return instance.__dict__.get(self.name)
        value = _load(instance, state, self.load, self.return_type, self.target)
        instance.__dict__[self.name] = value
        state.loaded.add(self.name)
        return value

    def __set__(self, instance: Any, value: Any) -> None:
        instance.__dict__[self.name] = value


def _lazy_accessor(method: Callable[..., Any], accessor: AccessorDescriptor, target: str) -> Any:
    @functools.wraps(method)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        state = _state(self)
        if state is not None and accessor.field not in state.loaded:
            value = _load(self, state, accessor.load_query, accessor.return_type, target)
            self.__dict__[accessor.field] = value
            state.loaded.add(accessor.field)
        return method(self, *args, **kwargs)

    return wrapper


class EntityProxyFactory:
    """Generates and caches proxy classes, one per entity type."""

    def __init__(self) -> None:
        self._classes: dict[type, type] = {}
        self._lock = threading.Lock()

    def proxy_class(self, cls: type[T]) -> type[T]:
        cls = entity_type_of(cls)
        proxy = self._classes.get(cls)
        if proxy is not None:
            return proxy
        with self._lock:
            proxy = self._classes.get(cls)
            if proxy is None:
                proxy = self._build(cls)
                self._classes[cls] = proxy
        return proxy

    def create(self, cls: type[T], session: Any) -> T:
        """Instantiate a proxy of *cls* bound to *session*."""
        proxy = self.proxy_class(cls)
        instance = proxy.__new__(proxy)
        instance.__dict__[STATE_ATTRIBUTE] = _ProxyState(session)
        instance.__init__()
        return instance

    def _build(self, cls: type) -> type:
        descriptor = describe(cls)
        namespace: dict[str, Any] = {
            PROXY_TARGET_ATTRIBUTE: cls,
            "__module__": cls.__module__,
            "__qualname__": f"{cls.__qualname__}Proxy",
        }
        for f in descriptor.deferred_fields:
            namespace[f.name] = LazyAttribute(
                f.name, f.load_query, f.field_type, f"{cls.__name__}.{f.name}"  # type: ignore[arg-type]
            )
        for accessor in descriptor.accessors:
            namespace[accessor.name] = _lazy_accessor(
                getattr(cls, accessor.name), accessor, f"{cls.__name__}.{accessor.name}()"
            )
        logger.debug("Generated proxy class for %s", cls.__name__)
        return type(f"{cls.__name__}Proxy", (cls,), namespace)


default_factory = EntityProxyFactory()


def raw_value(entity: Any, name: str) -> Any:
    """Read a field without triggering a lazy load."""
    stored = getattr(entity, "__dict__", {})
    if name in stored:
        return stored[name]
    if isinstance(inspect.getattr_static(entity, name, None), LazyAttribute):
        return None
    return getattr(entity, name, None)


def is_loaded(entity: Any, name: str) -> bool:
    """Whether the deferred field (or accessor) *name* has been resolved.

    Eager fields and fields of plain entities are always resolved.
    """
    state = _state(entity)
    if state is None:
        return True
    descriptor = describe(type(entity))
    deferred = {f.name for f in descriptor.deferred_fields}
    for accessor in descriptor.accessors:
        deferred.add(accessor.field)
        if accessor.name == name:
            name = accessor.field
    return name not in deferred or name in state.loaded
