"""Validation rules derived from property metadata.

Each rule is a frozen pydantic model naming one check. ``check(value)``
returns a violation message, or ``None`` when the value passes. Apart from
the presence rules, every rule lets ``None`` through; presence is a
separate concern.

Rules can also be created by name through a ``RuleFactoryRegistry``, which
is how ad hoc ``x["assert"]`` declarations are turned into rules without
importing arbitrary classes.
"""

import ipaddress
import re
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence, Set
from datetime import date, datetime, time
from typing import Any, ClassVar, Literal
from urllib.parse import urlparse

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

type PrimitiveType = Literal["string", "integer", "number", "boolean", "array", "object"]
type FormatName = Literal["email", "uuid", "uri", "url", "date", "time", "date-time"]

# Deliberately loose: one @, no whitespace, a dot in the domain
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationRule(BaseModel):
    """Base class for every derived rule."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")

    kind: ClassVar[str] = "rule"

    def check(self, value: Any) -> str | None:  # noqa: ANN401 - validates anything
        """Return a violation message for ``value``, or None if it passes."""
        raise NotImplementedError


def is_collection(value: object) -> bool:
    """Whether a value is a sequence or set other than text."""
    return isinstance(value, Sequence | Set) and not isinstance(value, str | bytes)


class TypeRule(ValidationRule):
    """The value must be of a primitive contract type."""

    kind: ClassVar[str] = "type"

    expected: PrimitiveType

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if value is None:
            return None
        match self.expected:
            case "string":
                ok = isinstance(value, str)
            case "integer":
                ok = isinstance(value, int) and not isinstance(value, bool)
            case "number":
                ok = isinstance(value, int | float) and not isinstance(value, bool)
            case "boolean":
                ok = isinstance(value, bool)
            case "array":
                ok = is_collection(value)
            case _:
                ok = not isinstance(value, str | int | float | bool)
        return None if ok else f"This value should be of type {self.expected}."


class InstanceOfRule(ValidationRule):
    """The value must be an instance of a class."""

    kind: ClassVar[str] = "instance_of"

    cls: type

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if value is None or isinstance(value, self.cls):
            return None
        return f"This value should be of type {self.cls.__name__}."


class CascadeRule(ValidationRule):
    """Validate the value's own properties as well; executed by the loader."""

    kind: ClassVar[str] = "cascade"

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        return None


class NotNullRule(ValidationRule):
    """The value must not be null.

    With ``optional`` set, an absent property is accepted; only an explicit
    null is rejected.
    """

    kind: ClassVar[str] = "not_null"

    optional: bool = False

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        return "This value should not be null." if value is None else None


class NotBlankRule(ValidationRule):
    """The value must not be null, an empty string or an empty collection."""

    kind: ClassVar[str] = "not_blank"

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        blank = value is None or value == "" or (is_collection(value) and len(value) == 0)
        return "This value should not be blank." if blank else None


class LengthRule(ValidationRule):
    """String length bounds; either bound may be absent."""

    kind: ClassVar[str] = "length"

    min: int | None = None
    max: int | None = None

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if not isinstance(value, str):
            return None
        if self.min is not None and len(value) < self.min:
            return f"This value is too short. It should have {self.min} characters or more."
        if self.max is not None and len(value) > self.max:
            return f"This value is too long. It should have {self.max} characters or less."
        return None


class PatternRule(ValidationRule):
    """The string must contain a match for a regular expression."""

    kind: ClassVar[str] = "pattern"

    pattern: str

    @field_validator("pattern")
    @classmethod
    def compiles(cls, v: str) -> str:
        """Reject patterns that do not compile."""
        try:
            re.compile(v)
        except re.error as e:
            msg = f"Invalid regular expression: {e}"
            raise ValueError(msg) from e
        return v

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if not isinstance(value, str) or re.search(self.pattern, value):
            return None
        return "This value is not valid."


def _parses(parser: Callable[[str], object], value: str) -> bool:
    try:
        parser(value)
    except ValueError:
        return False
    return True


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


class FormatRule(ValidationRule):
    """The string must be in a well-known format."""

    kind: ClassVar[str] = "format"

    format: FormatName

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if not isinstance(value, str):
            return None
        match self.format:
            case "email":
                ok = bool(_EMAIL_PATTERN.match(value))
            case "uuid":
                ok = _parses(uuid.UUID, value)
            case "uri" | "url":
                ok = _is_url(value)
            case "date":
                ok = _parses(date.fromisoformat, value)
            case "time":
                ok = _parses(time.fromisoformat, value)
            case _:
                ok = _parses(datetime.fromisoformat, value)
        return None if ok else f"This value is not a valid {self.format}."


class ComparisonRule(ValidationRule):
    """Numeric bound: ``gt``/``ge`` for minimums, ``lt``/``le`` for maximums."""

    kind: ClassVar[str] = "comparison"

    operator: Literal["gt", "ge", "lt", "le"]
    limit: float

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if value is None or isinstance(value, bool) or not isinstance(value, int | float):
            return None
        match self.operator:
            case "gt":
                ok, phrase = value > self.limit, "greater than"
            case "ge":
                ok, phrase = value >= self.limit, "greater than or equal to"
            case "lt":
                ok, phrase = value < self.limit, "less than"
            case _:
                ok, phrase = value <= self.limit, "less than or equal to"
        return None if ok else f"This value should be {phrase} {self.limit:g}."


class MultipleOfRule(ValidationRule):
    """The number must be a multiple of ``divisor``."""

    kind: ClassVar[str] = "multiple_of"

    divisor: float

    @field_validator("divisor")
    @classmethod
    def positive(cls, v: float) -> float:
        """Reject zero and negative divisors."""
        if v <= 0:
            msg = "divisor must be positive"
            raise ValueError(msg)
        return v

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if value is None or isinstance(value, bool) or not isinstance(value, int | float):
            return None
        quotient = value / self.divisor
        if abs(quotient - round(quotient)) < 1e-9:  # noqa: PLR2004 - float tolerance
            return None
        return f"This value should be a multiple of {self.divisor:g}."


class CountRule(ValidationRule):
    """Collection size bounds; either bound may be absent."""

    kind: ClassVar[str] = "count"

    min: int | None = None
    max: int | None = None

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if not is_collection(value):
            return None
        if self.min is not None and len(value) < self.min:
            return f"This collection should contain {self.min} elements or more."
        if self.max is not None and len(value) > self.max:
            return f"This collection should contain {self.max} elements or less."
        return None


def _item_key(item: object) -> tuple[str, object]:
    """Structural key for scalars, identity for anything else."""
    # bool before int: True == 1 but they are different JSON values
    if item is None:
        return ("null", None)
    if isinstance(item, bool):
        return ("boolean", item)
    if isinstance(item, int):
        return ("integer", item)
    if isinstance(item, float):
        return ("number", repr(item))
    if isinstance(item, str):
        return ("string", item)
    return ("identity", id(item))


class UniqueItemsRule(ValidationRule):
    """Every element of the collection must be distinct."""

    kind: ClassVar[str] = "unique_items"

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if not is_collection(value) or self.duplicate_index(value) is None:
            return None
        return "This collection contains duplicate values."

    def duplicate_index(self, value: Iterable[Any]) -> int | None:
        """Return the index of the first duplicate element, if any."""
        seen = set()
        for index, item in enumerate(value):
            key = _item_key(item)
            if key in seen:
                return index
            seen.add(key)
        return None


class EachRule(ValidationRule):
    """Apply a set of rules to every element of a collection."""

    kind: ClassVar[str] = "each"

    rules: tuple[ValidationRule, ...]

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if not is_collection(value):
            return None
        for item in value:
            for rule in self.rules:
                message = rule.check(item)
                if message is not None:
                    return message
        return None


class ChoiceRule(ValidationRule):
    """The value must be one of the allowed values."""

    kind: ClassVar[str] = "choice"

    choices: tuple[Any, ...]

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if value is None or value in self.choices:
            return None
        return "The value you selected is not a valid choice."


class IpAddressRule(ValidationRule):
    """The string must be an IP address, optionally of one version."""

    kind: ClassVar[str] = "ip_address"

    version: Literal[4, 6] | None = None

    def check(self, value: Any) -> str | None:  # noqa: ANN401
        if not isinstance(value, str):
            return None
        try:
            address = ipaddress.ip_address(value)
        except ValueError:
            return "This is not a valid IP address."
        if self.version is not None and address.version != self.version:
            return f"This is not a valid IPv{self.version} address."
        return None


type RuleFactory = Callable[..., ValidationRule]

BUILTIN_RULES: tuple[type[ValidationRule], ...] = (
    TypeRule,
    NotNullRule,
    NotBlankRule,
    LengthRule,
    PatternRule,
    FormatRule,
    ComparisonRule,
    MultipleOfRule,
    CountRule,
    UniqueItemsRule,
    ChoiceRule,
    IpAddressRule,
)


class RuleFactoryRegistry:
    """Named rule constructors for ad hoc rule declarations.

    Built-in rules are registered under their ``kind``. Extensions register
    their own factories ahead of time and refer to them by name.
    """

    def __init__(self, include_builtins: bool = True) -> None:
        self._factories: dict[str, RuleFactory] = {}
        if include_builtins:
            for rule_class in BUILTIN_RULES:
                self.register(rule_class.kind, rule_class)

    def register(self, name: str, factory: RuleFactory) -> None:
        """Register (or replace) the factory for a rule name."""
        self._factories[name] = factory

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def create(self, name: str, options: Mapping[str, Any] | None = None) -> ValidationRule | None:
        """Instantiate a registered rule.

        Args:
            name: Registered rule name.
            options: Keyword arguments passed to the factory.

        Returns:
            ValidationRule | None: The rule, or None if the name is unknown or
                the factory rejects the arguments.
        """
        factory = self._factories.get(name)
        if factory is None:
            logger.debug("Skipping unknown ad hoc rule {}", name)
            return None
        try:
            rule = factory(**dict(options or {}))
        except (TypeError, ValueError, ValidationError) as e:
            logger.debug("Skipping ad hoc rule {}: {}", name, e)
            return None
        if not isinstance(rule, ValidationRule):
            logger.debug("Skipping ad hoc rule {}: factory returned {}", name, type(rule))
            return None
        return rule
