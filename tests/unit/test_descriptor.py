"""Unit tests for entity descriptors."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar

import pytest
from pydantic import BaseModel

from row_graph.core.enums import FieldKind
from row_graph.core.exceptions import ConfigurationError
from row_graph.mapping.annotations import (
    Column,
    Key,
    LoadQuery,
    MultiRelation,
    SingleRelation,
    load_query,
)
from row_graph.mapping.descriptor import collection_shape, describe, entity_type_of


@dataclass
class Address:
    address_id: Annotated[int | None, Key()] = None
    city: str | None = None


@dataclass
class Office:
    office_id: Annotated[int | None, Key()] = None
    office_name: str | None = None


@dataclass
class Employee:
    employee_id: Annotated[int | None, Key()] = None
    full_name: Annotated[str | None, Column("name")] = None
    address: Annotated[Address | None, SingleRelation()] = None
    offices: Annotated[list[Office], MultiRelation()] = field(default_factory=list)
    reviews: Annotated[
        list[Office] | None,
        LoadQuery("SELECT * FROM review WHERE employee_id = :employee_id"),
    ] = field(default=None, repr=False, compare=False)
    registry_name: ClassVar[str] = "employee"


class PlainEntity:
    entity_id: Annotated[int, Key()]
    label: str
    _hidden: int

    def __init__(self) -> None:
        self.entity_id = 0
        self.label = ""


class WithAccessor:
    owner_id: int | None = None
    offices: list[Office] | None = None

    @load_query("SELECT * FROM office WHERE employee_id = :owner_id")
    def get_offices(self) -> list[Office]:
        return self.offices  # type: ignore[return-value]


class TestDescribe:
    def test_field_kinds_and_columns(self) -> None:
        descriptor = describe(Employee)
        assert [f.name for f in descriptor.fields] == [
            "employee_id",
            "full_name",
            "address",
            "offices",
            "reviews",
        ]
        assert descriptor.field("full_name").column == "name"
        assert descriptor.field("address").kind is FieldKind.SINGLE_RELATION
        assert descriptor.field("address").target_type is Address
        assert descriptor.field("offices").kind is FieldKind.MULTI_RELATION
        assert descriptor.field("offices").target_type is Office

    def test_key_field(self) -> None:
        assert describe(Employee).key_field.name == "employee_id"
        assert describe(Office).key_field.name == "office_id"

    def test_deferred_field_excluded_from_eager_mapping(self) -> None:
        descriptor = describe(Employee)
        assert [f.name for f in descriptor.deferred_fields] == ["reviews"]
        assert "reviews" not in [f.name for f in descriptor.multi_relations]
        assert "reviews" not in [f.name for f in descriptor.scalar_fields]
        assert descriptor.is_proxied

    def test_eager_entity_is_not_proxied(self) -> None:
        assert not describe(Office).is_proxied

    def test_plain_class_skips_private_and_classvar(self) -> None:
        descriptor = describe(PlainEntity)
        assert [f.name for f in descriptor.fields] == ["entity_id", "label"]
        assert describe(Employee).field("registry_name") is None

    def test_accessor_inferred_from_name(self) -> None:
        descriptor = describe(WithAccessor)
        assert len(descriptor.accessors) == 1
        accessor = descriptor.accessors[0]
        assert accessor.name == "get_offices"
        assert accessor.field == "offices"
        assert accessor.return_type == list[Office]
        assert "offices" not in [f.name for f in descriptor.scalar_fields]

    def test_field_for_parameter_by_name_then_column(self) -> None:
        descriptor = describe(Employee)
        assert descriptor.field_for_parameter("full_name").name == "full_name"
        assert descriptor.field_for_parameter("name").name == "full_name"
        assert descriptor.field_for_parameter("nope") is None

    def test_cached_per_type(self) -> None:
        assert describe(Employee) is describe(Employee)

    def test_concurrent_first_access_builds_once(self) -> None:
        @dataclass
        class Fresh:
            fresh_id: Annotated[int | None, Key()] = None

        results: list[Any] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            results.append(describe(Fresh))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(results) == 8
        assert all(r is results[0] for r in results)

    def test_entity_type_of_plain_class(self) -> None:
        assert entity_type_of(Employee) is Employee


@dataclass
class TwoKeys:
    first: Annotated[int | None, Key()] = None
    second: Annotated[int | None, Key()] = None


@dataclass
class UntypedCollection:
    items: Annotated[list, MultiRelation()] = field(default_factory=list)


@dataclass
class WildcardCollection:
    items: Annotated[list[Any], MultiRelation()] = field(default_factory=list)


@dataclass
class NotACollection:
    item: Annotated[Office | None, MultiRelation()] = None


class AccessorWithoutField:
    @load_query("SELECT 1")
    def offices(self) -> list[Office]:
        return []


class AccessorToMissingField:
    @load_query("SELECT 1", field="nothing")
    def load(self) -> list[Office]:
        return []


class LazyModel(BaseModel):
    model_id: int | None = None
    offices: Annotated[list[Office] | None, LoadQuery("SELECT 1")] = None


@dataclass
class BrokenChild:
    child_id: Annotated[int | None, Key()] = None
    items: Annotated[int, MultiRelation()] = 0


@dataclass
class ParentOfBroken:
    parent_id: Annotated[int | None, Key()] = None
    child: Annotated[BrokenChild | None, SingleRelation()] = None


@dataclass
class ParentOfBrokenList:
    parent_id: Annotated[int | None, Key()] = None
    children: Annotated[list[BrokenChild], MultiRelation()] = field(default_factory=list)


@dataclass
class Manager:
    manager_id: Annotated[int | None, Key()] = None
    reports: Annotated[list[Report], MultiRelation()] = field(default_factory=list)


@dataclass
class Report:
    report_id: Annotated[int | None, Key()] = None
    manager: Annotated[Manager | None, SingleRelation()] = None


class TestConfigurationErrors:
    def test_two_keys(self) -> None:
        with pytest.raises(ConfigurationError, match="more than one key"):
            describe(TwoKeys)

    def test_multi_relation_without_element_type(self) -> None:
        with pytest.raises(ConfigurationError, match="concrete element type"):
            describe(UntypedCollection)

    def test_multi_relation_with_wildcard_element(self) -> None:
        with pytest.raises(ConfigurationError, match="concrete element type"):
            describe(WildcardCollection)

    def test_multi_relation_not_a_collection(self) -> None:
        with pytest.raises(ConfigurationError, match="must be declared as a collection"):
            describe(NotACollection)

    def test_accessor_field_cannot_be_inferred(self) -> None:
        with pytest.raises(ConfigurationError, match="cannot determine the field"):
            describe(AccessorWithoutField)

    def test_accessor_field_missing(self) -> None:
        with pytest.raises(ConfigurationError, match="'nothing' does not exist"):
            describe(AccessorToMissingField)

    def test_lazy_fields_on_pydantic_model(self) -> None:
        with pytest.raises(ConfigurationError, match="dataclass or plain class"):
            describe(LazyModel)

    def test_invalid_related_entity_fails_with_parent(self) -> None:
        with pytest.raises(ConfigurationError, match="BrokenChild.items"):
            describe(ParentOfBroken)
        with pytest.raises(ConfigurationError, match="BrokenChild.items"):
            describe(ParentOfBrokenList)
        # Nothing in the failed graph is cached
        with pytest.raises(ConfigurationError):
            describe(ParentOfBroken)

    def test_cyclic_relations_describe_both_sides(self) -> None:
        manager = describe(Manager)
        assert manager.multi_relations[0].target_type is Report
        assert describe(Report).single_relations[0].target_type is Manager


class TestCollectionShape:
    def test_sequence_interfaces_use_list(self) -> None:
        for annotation in (list[Office], Sequence[Office]):
            shape = collection_shape(annotation)
            assert shape.factory is list
            assert shape.element_type is Office

    def test_set_and_deque(self) -> None:
        assert collection_shape(set[Office]).factory is set
        assert collection_shape(deque[Office]).factory is deque

    def test_mapping(self) -> None:
        shape = collection_shape(dict[int, Office])
        assert shape.is_mapping
        assert shape.element_type is Office

    def test_not_a_collection(self) -> None:
        assert collection_shape(str) is None
        assert collection_shape(Office) is None
        assert collection_shape(int | None) is None

    def test_optional_is_unwrapped(self) -> None:
        assert collection_shape(list[Office] | None).element_type is Office
