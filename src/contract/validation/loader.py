"""Validation profiles for payload types and their execution.

``ConstraintLoader.load`` maps every declared property of a type to its
rules. ``ConstraintLoader.validate`` runs them against a hydrated object,
descending into nested objects and collection items where a cascade rule
asks for it. Violations are reported by wire-name path, for example
``address.zip`` or ``lines[2].quantity``.
"""

from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict

from src.contract.metadata import PropertyMeta
from src.contract.validation.mapper import ConstraintMapper
from src.contract.validation.rules import (
    CascadeRule,
    EachRule,
    NotBlankRule,
    NotNullRule,
    UniqueItemsRule,
    ValidationRule,
    is_collection,
)
from src.core.exceptions import RequestValidationFailed

_LEAF_TYPES = (str, bytes, int, float, bool)


class Violation(BaseModel):
    """One failed rule, addressed by property path."""

    model_config = ConfigDict(frozen=True)

    property: Annotated[
        str,
        PropertyMeta(
            description="Path of the invalid property",
            type="string",
            example="address.zip",
            required=True,
        ),
    ]
    message: Annotated[
        str,
        PropertyMeta(
            description="Why the value was rejected",
            type="string",
            example="This value should not be blank.",
            required=True,
        ),
    ]


@dataclass(frozen=True, slots=True)
class _ProfileEntry:
    attribute: str
    wire_name: str
    rules: tuple[ValidationRule, ...]


def _applies_when_absent(rule: ValidationRule) -> bool:
    if isinstance(rule, NotBlankRule):
        return True
    return isinstance(rule, NotNullRule) and not rule.optional


class ConstraintLoader:
    """Builds and runs validation profiles.

    Profiles are cached per type; concurrent first builds produce equal
    profiles and the first one stored is kept.

    Args:
        mapper: Rule mapper; a default one is created when omitted.
    """

    def __init__(self, mapper: ConstraintMapper | None = None) -> None:
        self.mapper = mapper or ConstraintMapper()
        self._profiles: dict[type, tuple[_ProfileEntry, ...]] = {}

    def load(self, cls: type) -> dict[str, list[ValidationRule]]:
        """Return the rules of every declared property, keyed by attribute name."""
        return {entry.attribute: list(entry.rules) for entry in self._profile(cls)}

    def validate(self, obj: object) -> list[Violation]:
        """Validate a hydrated object against its type's profile.

        Args:
            obj: The object to check.

        Returns:
            list[Violation]: Every violation found; empty when valid.
        """
        violations: list[Violation] = []
        self._validate(obj, "", violations, set())
        return violations

    def assert_valid(self, obj: object) -> None:
        """Validate ``obj`` and raise if anything is wrong.

        Raises:
            RequestValidationFailed: Carrying every violation found.
        """
        violations = self.validate(obj)
        if violations:
            raise RequestValidationFailed(violations)

    def _profile(self, cls: type) -> tuple[_ProfileEntry, ...]:
        profile = self._profiles.get(cls)
        if profile is None:
            entries = tuple(
                _ProfileEntry(
                    attribute=descriptor.name,
                    wire_name=descriptor.meta.wire_name(descriptor.name),
                    rules=tuple(self.mapper.map(descriptor, descriptor.meta)),
                )
                for descriptor in self.mapper.provider.describe_type(cls)
                if descriptor.meta is not None
            )
            profile = self._profiles.setdefault(cls, entries)
        return profile

    def _validate(
        self, obj: object, prefix: str, out: list[Violation], active: set[int]
    ) -> None:
        # Objects on the current path are skipped so cycles terminate
        if id(obj) in active:
            return
        active.add(id(obj))

        for entry in self._profile(type(obj)):
            path = f"{prefix}.{entry.wire_name}" if prefix else entry.wire_name
            present = hasattr(obj, entry.attribute)
            value = getattr(obj, entry.attribute, None)
            for rule in entry.rules:
                if present or _applies_when_absent(rule):
                    self._apply(rule, value, path, out, active)

        active.discard(id(obj))

    def _apply(
        self,
        rule: ValidationRule,
        value: Any,  # noqa: ANN401
        path: str,
        out: list[Violation],
        active: set[int],
    ) -> None:
        if isinstance(rule, CascadeRule):
            if value is not None and not isinstance(value, _LEAF_TYPES):
                self._validate(value, path, out, active)
            return

        if isinstance(rule, EachRule):
            if is_collection(value):
                for index, item in enumerate(value):
                    for inner in rule.rules:
                        self._apply(inner, item, f"{path}[{index}]", out, active)
            return

        message = rule.check(value)
        if message is None:
            return
        if isinstance(rule, UniqueItemsRule):
            # Point at the first repeated element
            index = rule.duplicate_index(value)
            if index is not None:
                path = f"{path}[{index}]"
        out.append(Violation(property=path, message=message))
