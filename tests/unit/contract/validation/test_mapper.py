"""Unit tests for the constraint mapper."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Annotated, Any

import pytest
import pytest_check

from src.contract.discovery import AnnotatedMetadataProvider, PropertyDescriptor
from src.contract.metadata import PropertyMeta
from src.contract.validation.mapper import ConstraintMapper
from src.contract.validation.rules import (
    CascadeRule,
    ChoiceRule,
    ComparisonRule,
    CountRule,
    EachRule,
    FormatRule,
    InstanceOfRule,
    IpAddressRule,
    LengthRule,
    MultipleOfRule,
    NotBlankRule,
    NotNullRule,
    PatternRule,
    RuleFactoryRegistry,
    TypeRule,
    UniqueItemsRule,
    ValidationRule,
)
from tests.fixtures.dtos import Address, Node, Status, UserDto


@dataclass
class Misc:
    score: Annotated[
        float,
        PropertyMeta(minimum=0, exclusive_minimum=True, maximum=1, multiple_of=0.25),
    ]
    level: Annotated[str, PropertyMeta(enum=["low", "high"], required=True)]
    forced: Annotated[Any, PropertyMeta(type="integer")]
    attributes: Annotated[dict[str, int], PropertyMeta()]
    anything: Annotated[object, PropertyMeta()]
    holder: Annotated[Address, PropertyMeta()]
    ref_id: Annotated[str, PropertyMeta(format="uuid", min_length=36, max_length=36)]
    counter: Annotated[str, PropertyMeta(format="int64")]
    items: Annotated[list[int], PropertyMeta(min_items=1, required=True)]
    nullable_required: Annotated[str | None, PropertyMeta(required=True, nullable=True)]


@dataclass
class Extended:
    host: Annotated[
        str,
        PropertyMeta(
            x={
                "assert": [
                    "not_blank",
                    ["ip_address", {"version": 4}],
                    ["unknown_rule"],
                    42,
                    ["length", {"bogus": 1}],
                    ["length", "not options"],
                ],
                "x-note": "ignored here",
            }
        ),
    ]
    single: Annotated[str, PropertyMeta(x={"assert": "ip_address"})]


class Slug(ValidationRule):
    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if isinstance(value, str) and " " in value:
            return "This value should not contain spaces."
        return None


class SlugContributor:
    def contribute(
        self, prop: PropertyDescriptor, meta: PropertyMeta
    ) -> Iterable[ValidationRule]:
        if prop.name.endswith("slug"):
            yield Slug()


@dataclass
class Page:
    slug: Annotated[str, PropertyMeta(required=True)]
    title: Annotated[str, PropertyMeta()]


def descriptor(cls: type, name: str) -> PropertyDescriptor:
    return next(d for d in AnnotatedMetadataProvider().describe_type(cls) if d.name == name)


def rules_for(
    cls: type, name: str, mapper: ConstraintMapper | None = None
) -> list[ValidationRule]:
    prop = descriptor(cls, name)
    assert prop.meta is not None
    return (mapper or ConstraintMapper()).map(prop, prop.meta)


@pytest.mark.unit
class TestMapUserDto:
    """Rules derived for a typical payload."""

    def test_required_integer(self) -> None:
        """Type, presence, then bounds."""
        assert rules_for(UserDto, "id") == [
            TypeRule(expected="integer"),
            NotNullRule(),
            ComparisonRule(operator="ge", limit=1),
        ]

    def test_required_string_uses_not_blank(self) -> None:
        """Required strings must not be blank."""
        assert rules_for(UserDto, "email") == [
            TypeRule(expected="string"),
            NotBlankRule(),
            FormatRule(format="email"),
        ]

    def test_nullable_string_has_no_presence_rule(self) -> None:
        """Nullable properties skip presence rules."""
        assert rules_for(UserDto, "nickname") == [
            TypeRule(expected="string"),
            LengthRule(max=20),
        ]

    def test_array_of_scalars(self) -> None:
        """Count, uniqueness and item type rules."""
        assert rules_for(UserDto, "tags") == [
            TypeRule(expected="array"),
            NotNullRule(optional=True),
            CountRule(max=3),
            UniqueItemsRule(),
            EachRule(rules=(TypeRule(expected="string"),)),
        ]

    def test_array_of_objects_cascades(self) -> None:
        """Referenced item types are checked and validated recursively."""
        assert rules_for(UserDto, "addresses") == [
            TypeRule(expected="array"),
            NotNullRule(optional=True),
            EachRule(rules=(InstanceOfRule(cls=Address), CascadeRule())),
        ]

    def test_enum_class(self) -> None:
        """Enumerations accept members and wire values."""
        assert rules_for(UserDto, "status") == [
            InstanceOfRule(cls=Status),
            NotNullRule(optional=True),
            ChoiceRule(
                choices=(Status.ACTIVE, Status.SUSPENDED, "active", "suspended")
            ),
        ]

    def test_object_reference_cascades(self) -> None:
        """Resolved references check the instance and cascade."""
        assert rules_for(Node, "parent") == [InstanceOfRule(cls=Node), CascadeRule()]


@pytest.mark.unit
class TestMapVariants:
    """Less common declarations."""

    def test_exclusive_bounds_and_multiple(self) -> None:
        """Exclusive minimums use a strict comparison."""
        assert rules_for(Misc, "score") == [
            TypeRule(expected="number"),
            NotNullRule(optional=True),
            ComparisonRule(operator="gt", limit=0),
            ComparisonRule(operator="le", limit=1),
            MultipleOfRule(divisor=0.25),
        ]

    def test_literal_enum(self) -> None:
        """Literal enum lists become a choice rule."""
        assert rules_for(Misc, "level")[-1] == ChoiceRule(choices=("low", "high"))

    def test_declared_type_wins(self) -> None:
        """An explicit type overrides inference."""
        assert rules_for(Misc, "forced")[0] == TypeRule(expected="integer")

    def test_mapping_annotation(self) -> None:
        """Mappings only need to be objects."""
        assert rules_for(Misc, "attributes")[0] == TypeRule(expected="object")

    def test_untyped_object_has_no_type_rule(self) -> None:
        """A bare object annotation yields no type rule."""
        assert rules_for(Misc, "anything") == [NotNullRule(optional=True)]

    def test_class_annotation_cascades(self) -> None:
        """Annotated classes are validated recursively even without a ref."""
        assert rules_for(Misc, "holder")[:2] == [InstanceOfRule(cls=Address), CascadeRule()]

    def test_string_format_and_length(self) -> None:
        """Length, then format."""
        assert rules_for(Misc, "ref_id")[2:] == [
            LengthRule(min=36, max=36),
            FormatRule(format="uuid"),
        ]

    def test_numeric_format_implies_type(self) -> None:
        """Numeric formats on strings add a type rule."""
        assert rules_for(Misc, "counter")[-1] == TypeRule(expected="integer")

    def test_required_array_uses_not_null(self) -> None:
        """Only strings use the blank check."""
        assert rules_for(Misc, "items")[1:3] == [NotNullRule(), CountRule(min=1)]

    def test_nullable_wins_over_required(self) -> None:
        """Nullable required properties carry no presence rule."""
        assert rules_for(Misc, "nullable_required") == [TypeRule(expected="string")]

    def test_pattern(self) -> None:
        """Patterns are carried over unchanged."""
        rules = rules_for(Address, "zip")

        assert PatternRule(pattern=r"^\d{5}$") in rules


@pytest.mark.unit
class TestExtensions:
    """Ad hoc rules and contributors."""

    def test_ad_hoc_rules(self) -> None:
        """Well-formed known declarations become rules; the rest are skipped."""
        rules = rules_for(Extended, "host")

        assert rules[-2:] == [NotBlankRule(), IpAddressRule(version=4)]
        assert len(rules) == 4

    def test_single_declaration(self) -> None:
        """A lone name is accepted."""
        assert rules_for(Extended, "single")[-1] == IpAddressRule()

    def test_custom_rule_factories(self) -> None:
        """A custom registry supplies the rule names."""
        registry = RuleFactoryRegistry(include_builtins=False)
        registry.register("ip_address", lambda **_: Slug())
        mapper = ConstraintMapper(rule_factories=registry)

        assert rules_for(Extended, "single", mapper)[-1] == Slug()

    def test_contributors_run_last(self) -> None:
        """Contributor rules follow every derived rule."""
        mapper = ConstraintMapper(contributors=[SlugContributor()])

        with pytest_check.check:
            assert rules_for(Page, "slug", mapper) == [
                TypeRule(expected="string"),
                NotBlankRule(),
                Slug(),
            ]
        with pytest_check.check:
            assert Slug() not in rules_for(Page, "title", mapper)

    def test_mapping_is_deterministic(self) -> None:
        """The same declaration always maps to the same rules."""
        mapper = ConstraintMapper()

        assert rules_for(UserDto, "tags", mapper) == rules_for(UserDto, "tags", mapper)
