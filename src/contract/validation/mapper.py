"""Derives validation rules from declared property metadata.

``ConstraintMapper.map`` turns one property's PropertyMeta into the rules
that check incoming values. Rules are additive; the output order is fixed:

1. type
2. presence
3. string, numeric and array rules
4. allowed values
5. ad hoc rules declared under ``x["assert"]``
6. rules appended by registered contributors
"""

from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any, Protocol, get_origin

from loguru import logger

from src.contract.discovery import (
    AnnotatedMetadataProvider,
    MetadataProvider,
    PropertyDescriptor,
)
from src.contract.metadata import PropertyMeta, enum_wire_value
from src.contract.schema.factory import infer_type_tag, unwrap_optional
from src.contract.validation.rules import (
    CascadeRule,
    ChoiceRule,
    ComparisonRule,
    CountRule,
    EachRule,
    FormatRule,
    InstanceOfRule,
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

ASSERT_KEY = "assert"

# Formats checked by a dedicated validator
_FORMAT_RULES = {
    "email": "email",
    "uuid": "uuid",
    "uri": "uri",
    "url": "url",
    "date": "date",
    "time": "time",
    "date-time": "date-time",
}

# Numeric formats only imply a type
_FORMAT_TYPES = {
    "int32": "integer",
    "int64": "integer",
    "float": "number",
    "double": "number",
}


class RuleContributor(Protocol):
    """Appends rules the mapper cannot derive on its own."""

    def contribute(
        self, prop: PropertyDescriptor, meta: PropertyMeta
    ) -> Iterable[ValidationRule]:
        """Return extra rules for one property."""
        ...


class ConstraintMapper:
    """Maps property metadata to validation rules.

    Args:
        provider: Metadata provider used to resolve referenced types.
        contributors: Extra rule sources, consulted in order.
        rule_factories: Named factories for ``x["assert"]`` declarations.
    """

    def __init__(
        self,
        provider: MetadataProvider | None = None,
        contributors: Sequence[RuleContributor] = (),
        rule_factories: RuleFactoryRegistry | None = None,
    ) -> None:
        self.provider = provider or AnnotatedMetadataProvider()
        self.contributors = list(contributors)
        self.rule_factories = rule_factories or RuleFactoryRegistry()

    def map(self, prop: PropertyDescriptor, meta: PropertyMeta) -> list[ValidationRule]:
        """Derive every rule that applies to one property.

        Args:
            prop: The property being mapped.
            meta: Its declared metadata.

        Returns:
            list[ValidationRule]: Rules in a deterministic order.
        """
        tag = meta.type or infer_type_tag(prop.annotation)

        rules: list[ValidationRule] = []
        rules.extend(self._type_rules(prop, meta))
        rules.extend(self._presence_rules(meta, tag))
        if tag == "string":
            rules.extend(self._string_rules(meta))
        if tag in ("integer", "number"):
            rules.extend(self._numeric_rules(meta))
        if tag == "array":
            rules.extend(self._array_rules(meta))
        rules.extend(self._choice_rules(meta))
        rules.extend(self._extension_rules(meta))
        for contributor in self.contributors:
            rules.extend(contributor.contribute(prop, meta))
        return rules

    def _type_rules(self, prop: PropertyDescriptor, meta: PropertyMeta) -> list[ValidationRule]:
        if meta.type is not None:
            return [TypeRule(expected=meta.type)]

        referenced = self.provider.resolve(meta.ref) if meta.ref is not None else None
        if referenced is not None:
            return [InstanceOfRule(cls=referenced), CascadeRule()]

        annotation = unwrap_optional(prop.annotation)
        target = get_origin(annotation) or annotation
        # Hydrated objects hold members, not wire values
        if isinstance(target, type) and issubclass(target, Enum):
            return [InstanceOfRule(cls=target)]

        tag = infer_type_tag(prop.annotation)
        if tag != "object":
            return [TypeRule(expected=tag)]

        if not isinstance(target, type) or target is object:
            return []
        if issubclass(target, Mapping):
            return [TypeRule(expected="object")]
        return [InstanceOfRule(cls=target), CascadeRule()]

    def _presence_rules(self, meta: PropertyMeta, tag: str) -> list[ValidationRule]:
        if meta.nullable:
            # Presence of nullable properties is checked when the request is read
            return []
        if meta.required:
            return [NotBlankRule() if tag == "string" else NotNullRule()]
        return [NotNullRule(optional=True)]

    def _string_rules(self, meta: PropertyMeta) -> list[ValidationRule]:
        rules: list[ValidationRule] = []
        if meta.min_length is not None or meta.max_length is not None:
            rules.append(LengthRule(min=meta.min_length, max=meta.max_length))
        if meta.pattern is not None:
            rules.append(PatternRule(pattern=meta.pattern))
        if meta.format in _FORMAT_RULES:
            rules.append(FormatRule(format=_FORMAT_RULES[meta.format]))
        elif meta.format in _FORMAT_TYPES:
            rules.append(TypeRule(expected=_FORMAT_TYPES[meta.format]))
        return rules

    def _numeric_rules(self, meta: PropertyMeta) -> list[ValidationRule]:
        rules: list[ValidationRule] = []
        if meta.minimum is not None:
            operator = "gt" if meta.exclusive_minimum else "ge"
            rules.append(ComparisonRule(operator=operator, limit=meta.minimum))
        if meta.maximum is not None:
            operator = "lt" if meta.exclusive_maximum else "le"
            rules.append(ComparisonRule(operator=operator, limit=meta.maximum))
        if meta.multiple_of is not None:
            rules.append(MultipleOfRule(divisor=meta.multiple_of))
        return rules

    def _array_rules(self, meta: PropertyMeta) -> list[ValidationRule]:
        rules: list[ValidationRule] = []
        if meta.min_items is not None or meta.max_items is not None:
            rules.append(CountRule(min=meta.min_items, max=meta.max_items))
        if meta.unique_items:
            rules.append(UniqueItemsRule())

        item_class = self.provider.resolve(meta.items_ref) if meta.items_ref else None
        if item_class is not None:
            rules.append(EachRule(rules=(InstanceOfRule(cls=item_class), CascadeRule())))
        elif meta.items_type is not None:
            rules.append(EachRule(rules=(TypeRule(expected=meta.items_type),)))
        return rules

    def _choice_rules(self, meta: PropertyMeta) -> list[ValidationRule]:
        if meta.enum:
            return [ChoiceRule(choices=tuple(meta.enum))]
        if meta.enum_class is not None:
            members = list(meta.enum_class)
            # Hydrated objects hold members, raw payloads hold wire values
            return [ChoiceRule(choices=(*members, *(enum_wire_value(m) for m in members)))]
        return []

    def _extension_rules(self, meta: PropertyMeta) -> list[ValidationRule]:
        declared = (meta.x or {}).get(ASSERT_KEY)
        if not declared:
            return []
        if isinstance(declared, str | Mapping) or not isinstance(declared, Sequence):
            declared = [declared]

        rules: list[ValidationRule] = []
        for entry in declared:
            parsed = _parse_assertion(entry)
            if parsed is None:
                logger.debug("Skipping malformed ad hoc rule declaration {!r}", entry)
                continue
            rule = self.rule_factories.create(*parsed)
            if rule is not None:
                rules.append(rule)
        return rules


def _parse_assertion(entry: Any) -> tuple[str, Mapping[str, Any]] | None:  # noqa: ANN401
    """Accept ``"kind"`` or ``["kind", {options}]``."""
    if isinstance(entry, str):
        return entry, {}
    if isinstance(entry, Sequence) and 1 <= len(entry) <= 2:  # noqa: PLR2004
        name = entry[0]
        options = entry[1] if len(entry) == 2 else {}  # noqa: PLR2004
        if isinstance(name, str) and isinstance(options, Mapping):
            return name, options
    return None
