"""Repository base class and data-access decorators.

Repository methods run inside a unit of work of the repository's engine::

    class EmployeeRepository(Repository):
        @sql_query("SELECT * FROM employee WHERE employee_id = :employee_id")
        def get(self, employee_id: int) -> Employee | None: ...

        @sql_update("INSERT INTO employee (name) VALUES (:name)", returning=ReturnInfo.GENERATED_KEYS)
        def add(self, employee: Employee) -> int: ...

        @transactional
        def rename(self, employee_id: int, name: str) -> None:
            employee = self.get(employee_id)
            ...

Arguments whose name matches a ``:name`` placeholder are bound to it. Any
other argument must be an entity (or a list of entities) and is bound
field-by-field, one parameter batch per entity.
"""

from __future__ import annotations

import functools
import inspect
import typing
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from row_graph.core.enums import ReturnInfo
from row_graph.core.exceptions import ConfigurationError, UnknownParameterError
from row_graph.mapping.descriptor import add_member, collection_shape, split_annotation
from row_graph.proxy.interpreter import interpret

F = TypeVar("F", bound=Callable[..., Any])

_NOT_ENTITIES = (str, bytes, bytearray, Mapping, set, frozenset)


class Repository:
    """Base class for repositories.

    Subclasses define data access methods with ``@sql_query``,
    ``@sql_update`` and ``@transactional``.
    """

    def __init__(self, engine: Any) -> None:
        self.engine = engine


def _is_entity(value: Any, conversions: Any) -> bool:
    return (
        value is not None
        and not isinstance(value, _NOT_ENTITIES)
        and not conversions.is_scalar(type(value))
    )


def _prepare(session: Any, sql: str, arguments: list[tuple[str, Any]]) -> Any:
    query = session.create_query(sql)
    labels = set(query.parameter_labels)
    entities: list[Any] = []
    for name, value in arguments:
        if name in labels:
            query.set_parameter(name, value)
        elif isinstance(value, (list, tuple)) and all(
            _is_entity(v, session.conversions) for v in value
        ):
            entities.extend(value)
        elif _is_entity(value, session.conversions):
            entities.append(value)
        else:
            raise UnknownParameterError(sql, name)
    for entity in entities:
        query.bind(entity)
    return query


def _call_arguments(signature: inspect.Signature, args: tuple, kwargs: dict) -> list[tuple[str, Any]]:
    bound = signature.bind(*args, **kwargs)
    bound.apply_defaults()
    # Drop self
    return list(bound.arguments.items())[1:]


class _ReturnType:
    """Return annotation of a method, resolved on first use."""

    def __init__(self, method: Callable[..., Any]) -> None:
        self._method = method
        self._resolved = False
        self._value: Any = None

    def get(self) -> Any:
        if not self._resolved:
            try:
                hints = typing.get_type_hints(self._method, include_extras=True)
            except (NameError, TypeError) as e:
                raise ConfigurationError(
                    f"{self._method.__qualname__}()", f"unresolvable return annotation: {e}"
                ) from e
            self._value = hints.get("return")
            self._resolved = True
        return self._value


def transactional(method: F) -> F:
    """Run the method inside a unit of work, joining an active one."""

    @functools.wraps(method)
    def wrapper(self: Repository, *args: Any, **kwargs: Any) -> Any:
        return self.engine.query(lambda session: method(self, *args, **kwargs))

    return wrapper  # type: ignore[return-value]


def sql_query(sql: str, *, map_key: str | None = None) -> Callable[[F], F]:
    """Replace the method body with *sql*, shaped by the return annotation.

    A single entity or scalar annotation yields ``None`` for no rows; a
    collection yields every row; a mapping is keyed by the *map_key* field.
    """

    def decorator(method: F) -> F:
        signature = inspect.signature(method)
        return_type = _ReturnType(method)
        target = f"{method.__qualname__}()"

        @functools.wraps(method)
        def wrapper(self: Repository, *args: Any, **kwargs: Any) -> Any:
            declared = return_type.get()
            if declared is None or declared is type(None):
                raise ConfigurationError(target, "a query method must declare its return type")
            arguments = _call_arguments(signature, (self, *args), kwargs)

            def work(session: Any) -> Any:
                query = _prepare(session, sql, arguments)
                return interpret(query, declared, map_key=map_key, target=target)

            return self.engine.query(work)

        return wrapper  # type: ignore[return-value]

    return decorator


def sql_update(sql: str, *, returning: ReturnInfo = ReturnInfo.AFFECTED_ROWS) -> Callable[[F], F]:
    """Replace the method body with an update statement.

    Returns the affected row count, or with ``ReturnInfo.GENERATED_KEYS``
    the generated keys: all of them for a collection return annotation,
    otherwise the first one (``None`` if there is none).
    """

    def decorator(method: F) -> F:
        signature = inspect.signature(method)
        return_type = _ReturnType(method)

        @functools.wraps(method)
        def wrapper(self: Repository, *args: Any, **kwargs: Any) -> Any:
            arguments = _call_arguments(signature, (self, *args), kwargs)

            def work(session: Any) -> Any:
                query = _prepare(session, sql, arguments)
                keys = query.execute_update()
                if returning is ReturnInfo.AFFECTED_ROWS:
                    return query.affected_rows
                declared, _ = split_annotation(return_type.get())
                shape = collection_shape(declared) if declared is not None else None
                if shape is not None and not shape.is_mapping:
                    collection = shape.factory()
                    for key in keys:
                        add_member(collection, key)
                    return collection
                return keys[0] if keys else None

            return self.engine.query(work)

        return wrapper  # type: ignore[return-value]

    return decorator
