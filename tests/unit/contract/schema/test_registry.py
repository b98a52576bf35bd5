"""Unit tests for the schema registry."""

from dataclasses import dataclass
from typing import Annotated

import pytest
from pytest_mock import MockerFixture

from src.contract.metadata import PropertyMeta
from src.contract.schema.factory import SchemaFactory
from src.contract.schema.registry import SchemaRegistry
from src.core.exceptions import SchemaNameCollisionError
from tests.fixtures import dtos


@dataclass
class Address:
    """Same short name as the shared fixture, different type."""

    line: Annotated[str, PropertyMeta()]


@dataclass
class Envelope:
    user: Annotated[object, PropertyMeta(ref=dtos.UserDto)]
    missing: Annotated[object, PropertyMeta(ref="tests.fixtures.dtos:Missing")]


@pytest.fixture
def registry() -> SchemaRegistry:
    """Registry over a short-naming factory."""
    return SchemaRegistry(SchemaFactory())


@pytest.mark.unit
class TestEnsure:
    """Recording types and their dependencies."""

    def test_records_reachable_types(self, registry: SchemaRegistry) -> None:
        """Nested references are recorded along with the root."""
        registry.ensure(Envelope)

        assert list(registry.export()) == ["Envelope", "UserDto", "Address"]

    def test_cycles_terminate(self, registry: SchemaRegistry) -> None:
        """A self-referencing type is recorded once."""
        registry.ensure(dtos.Node)

        assert len(registry) == 1
        assert "Node" in registry.export()

    def test_string_references(self, registry: SchemaRegistry) -> None:
        """Import paths are resolved before recording."""
        registry.ensure("tests.fixtures.dtos:Item")

        assert dtos.Item in registry
        assert "tests.fixtures.dtos:Item" in registry
        assert registry.schema_name(dtos.Item) == "Item"

    def test_unresolvable_reference_is_skipped(self, registry: SchemaRegistry) -> None:
        """Unknown references record nothing."""
        registry.ensure("tests.fixtures.dtos:Missing")

        assert len(registry) == 0
        assert registry.schema_name("tests.fixtures.dtos:Missing") is None

    def test_derives_each_type_once(self, mocker: MockerFixture) -> None:
        """Repeated and shared references reuse the first derivation."""
        factory = SchemaFactory()
        registry = SchemaRegistry(factory)
        spy = mocker.spy(factory, "_derive")

        registry.ensure(dtos.UserDto)
        registry.ensure(Envelope)
        registry.ensure(dtos.UserDto)

        assert spy.call_count == 3

    def test_short_name_collision(self, registry: SchemaRegistry) -> None:
        """Two types with one short name cannot both be exported."""
        registry.ensure(dtos.UserDto)

        with pytest.raises(SchemaNameCollisionError) as exc_info:
            registry.ensure(Address)

        assert exc_info.value.schema_name == "Address"
        assert exc_info.value.context["existing"] == "tests.fixtures.dtos.Address"

    def test_qualified_names_avoid_collision(self) -> None:
        """Qualified naming keeps same-named types apart."""
        registry = SchemaRegistry(SchemaFactory(naming="qualified"))

        registry.ensure(dtos.UserDto)
        registry.ensure(Address)

        exported = registry.export()
        assert "tests.fixtures.dtos.Address" in exported
        assert f"{Address.__module__}.Address" in exported


@pytest.mark.unit
class TestExport:
    """Exported component mapping."""

    def test_export_matches_factory(self, registry: SchemaRegistry) -> None:
        """Exported documents equal the factory's output."""
        registry.ensure(dtos.Item)

        assert registry.export() == {"Item": SchemaFactory().build(dtos.Item)}

    def test_export_returns_copies(self, registry: SchemaRegistry) -> None:
        """Mutating an export does not alter the registry."""
        registry.ensure(dtos.Item)
        registry.export()["Item"]["properties"].clear()

        assert registry.export()["Item"]["properties"]

    def test_contains_rejects_other_values(self, registry: SchemaRegistry) -> None:
        """Only classes and import paths can be looked up."""
        registry.ensure(dtos.Item)

        assert 42 not in registry
