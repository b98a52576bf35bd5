"""Generic recursive value normalizer.

Flattens arbitrary, possibly cyclic, possibly deep object graphs into plain
transport values (dicts, lists and scalars) that orjson can encode without
any further help.

The work is done by an ordered chain of handlers. Each handler either
returns ``Matched(value)`` or ``NoMatch()``; the first match wins:

1. ``None`` and scalars pass through
2. dates and times are formatted with ``date_format``
3. enumeration members become their wire value
4. values that render as text become that text
5. mappings and indexed sequences are normalized entry by entry
6. any other iterable becomes a list
7. registered custom handlers
8. arbitrary objects are expanded field by field (fallback)

Depth and cycle control wrap every recursive step outside the chain. The
visited set lives in one ``normalize`` call and is never shared.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from itertools import islice
from typing import Any, ClassVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.contract.metadata import enum_wire_value
from src.core.config import NormalizerConfig
from src.core.constants import (
    CIRCULAR_REF_KEY,
    DEFAULT_DATE_FORMAT,
    DEFAULT_TIME_FORMAT,
    OBJECT_PLACEHOLDER_KEY,
)
from src.core.types import JsonValue

SCALAR_TYPES = (str, int, float, bool)

# Classes whose __str__ is a debug rendering rather than a canonical text form
_STRUCTURED_TYPES: tuple[type, ...] = (BaseModel,)

_VALUE_CONTAINERS = (dict, list, tuple, set, frozenset)


@dataclass(frozen=True, slots=True)
class Matched:
    """A handler produced a normalized value."""

    value: Any


@dataclass(frozen=True, slots=True)
class NoMatch:
    """A handler does not apply; the chain moves on to the next one."""


type HandlerResult = Matched | NoMatch
type Recurse = Callable[[Any], Any]
type Handler = Callable[[Any, Recurse], HandlerResult]


class NormalizeOptions(BaseModel):
    """Options for one normalizer.

    Attributes:
        deep: Expand nested objects; when False they are described instead.
        max_depth: Depth at which values degrade to text or a placeholder.
        include_null: Keep map entries whose normalized value is None.
        date_format: strftime format for dates and datetimes.
        time_format: strftime format for times of day.
        max_traverse: Maximum number of elements processed per collection.
        property_filter: ``(name, value, owner) -> bool``; False drops a field.
        name_transform: ``name -> name`` rewrite for object fields.
        shape_lists: Turn index-keyed maps back into lists at the end.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    deep: bool = True
    max_depth: int = Field(default=8, ge=1)
    include_null: bool = True
    date_format: str = DEFAULT_DATE_FORMAT
    time_format: str = DEFAULT_TIME_FORMAT
    max_traverse: int = Field(default=10_000, gt=0)
    property_filter: Callable[[str, Any, object], bool] | None = None
    name_transform: Callable[[str], str] | None = None
    shape_lists: bool = True

    @classmethod
    def from_config(cls, config: NormalizerConfig, **overrides: Any) -> "NormalizeOptions":  # noqa: ANN401
        """Build options from the configured defaults."""
        return cls(**{**config.model_dump(), **overrides})


def renders_as_text(value: object) -> bool:
    """Whether a value exposes a canonical string form."""
    if isinstance(value, bytes | bytearray):
        return True
    if isinstance(value, _STRUCTURED_TYPES):
        return False
    return type(value).__str__ is not object.__str__


def _to_text(value: object) -> HandlerResult:
    """Stringify a value, reporting NoMatch when stringification fails."""
    try:
        if isinstance(value, bytes | bytearray):
            return Matched(bytes(value).decode("utf-8"))
        return Matched(str(value))
    except Exception as e:  # noqa: BLE001 - any __str__ failure falls through
        logger.trace("Cannot render {} as text: {}", type(value).__qualname__, e)
        return NoMatch()


def _type_name(value: object) -> str:
    cls = type(value)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def _normalize_key(key: object) -> str | int:
    if isinstance(key, bool):
        return str(key).lower()
    if isinstance(key, str | int):
        return key
    if isinstance(key, Enum):
        value = enum_wire_value(key)
        return value if isinstance(value, str | int) else str(value)
    return str(key)


class Normalizer:
    """Recursive normalizer with an extensible, ordered handler chain.

    Args:
        options: Normalization options; defaults are used when omitted.
    """

    # Per-class slot names, shared process-wide; entries never change
    _slots_cache: ClassVar[dict[type, tuple[str, ...]]] = {}

    def __init__(self, options: NormalizeOptions | None = None) -> None:
        self.options = options or NormalizeOptions()
        self._custom_handlers: list[Handler] = []

    def register_handler(self, handler: Handler) -> None:
        """Register a handler that runs before the arbitrary-object fallback.

        Handlers run in registration order; the first ``Matched`` wins.
        """
        self._custom_handlers.append(handler)

    def normalize(self, value: object) -> JsonValue:
        """Normalize any value into a tree of dicts, lists and scalars.

        Args:
            value: The value to normalize.

        Returns:
            JsonValue: The normalized tree.
        """
        # id -> object; holding the object keeps its id from being reused
        visited: dict[int, object] = {}
        data = self._recurse(value, 0, visited)
        if self.options.shape_lists:
            data = shape(data)
        return data

    def _leaf_handlers(self) -> Iterable[Handler]:
        yield self._scalar
        yield self._temporal
        yield self._enumeration
        yield self._text

    def _container_handlers(self) -> Iterable[Handler]:
        yield self._indexed
        yield self._iterable
        yield from self._custom_handlers
        yield self._object

    def _recurse(self, value: object, depth: int, visited: dict[int, object]) -> Any:  # noqa: ANN401
        if value is None or isinstance(value, SCALAR_TYPES):
            return value

        if depth >= self.options.max_depth or (not self.options.deep and depth > 0):
            return self._describe(value)

        def recurse(item: object) -> Any:  # noqa: ANN401
            return self._recurse(item, depth + 1, visited)

        # Leaves never recurse, so they need no cycle bookkeeping; shared
        # singletons such as enum members must not read as cycles
        for handler in self._leaf_handlers():
            result = handler(value, recurse)
            if isinstance(result, Matched):
                return result.value

        identity = id(value)
        if identity in visited:
            return {CIRCULAR_REF_KEY: identity}
        visited[identity] = value

        try:
            for handler in self._container_handlers():
                result = handler(value, recurse)
                if isinstance(result, Matched):
                    return result.value
        finally:
            # Equal tuples and empty singletons share one identity; built-in
            # containers only count as visited along the current path
            if isinstance(value, _VALUE_CONTAINERS):
                del visited[identity]

        # Nothing matched: leave the value as-is
        return value

    def _describe(self, value: object) -> Any:  # noqa: ANN401
        """Minimal rendering used below the depth limit."""
        # Leaf handlers never call back into recursion
        for handler in self._leaf_handlers():
            result = handler(value, self._describe)
            if isinstance(result, Matched):
                return result.value
        return {OBJECT_PLACEHOLDER_KEY: _type_name(value)}

    # Built-in handlers

    def _scalar(self, value: object, recurse: Recurse) -> HandlerResult:
        if value is None or isinstance(value, SCALAR_TYPES):
            return Matched(value)
        return NoMatch()

    def _temporal(self, value: object, recurse: Recurse) -> HandlerResult:
        if isinstance(value, time):
            return Matched(value.strftime(self.options.time_format))
        if isinstance(value, datetime | date):
            return Matched(value.strftime(self.options.date_format))
        return NoMatch()

    def _enumeration(self, value: object, recurse: Recurse) -> HandlerResult:
        if isinstance(value, Enum):
            return Matched(enum_wire_value(value))
        return NoMatch()

    def _text(self, value: object, recurse: Recurse) -> HandlerResult:
        if isinstance(value, bytes | bytearray):
            return _to_text(value)
        # Collections are expanded, not stringified
        if renders_as_text(value) and not isinstance(value, Mapping | Sequence):
            return _to_text(value)
        return NoMatch()

    def _indexed(self, value: object, recurse: Recurse) -> HandlerResult:
        include_null = self.options.include_null
        limit = self.options.max_traverse

        if isinstance(value, Mapping):
            out: dict[str | int, Any] = {}
            for key, item in islice(value.items(), limit):
                normalized = recurse(item)
                if normalized is not None or include_null:
                    out[_normalize_key(key)] = normalized
            return Matched(out)

        if isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray):
            entries = {}
            for index, item in enumerate(islice(value, limit)):
                normalized = recurse(item)
                if normalized is not None or include_null:
                    entries[index] = normalized
            if len(entries) == min(len(value), limit):
                return Matched(list(entries.values()))
            # Dropped entries leave gaps; keep the indices for shaping
            return Matched(entries)

        return NoMatch()

    def _iterable(self, value: object, recurse: Recurse) -> HandlerResult:
        # Pydantic models iterate as (name, value) pairs; expand them as objects
        if not isinstance(value, Iterable) or isinstance(value, _STRUCTURED_TYPES):
            return NoMatch()
        try:
            return Matched([recurse(item) for item in islice(value, self.options.max_traverse)])
        except TypeError as e:
            # __iter__ present but unusable
            logger.trace("Cannot iterate {}: {}", type(value).__qualname__, e)
            return NoMatch()

    def _object(self, value: object, recurse: Recurse) -> HandlerResult:
        property_filter = self.options.property_filter
        name_transform = self.options.name_transform

        out: dict[str | int, Any] = {}
        for name, field_value in self._fields(value):
            if property_filter is not None and not property_filter(name, field_value, value):
                continue
            key = name_transform(name) if name_transform is not None else name
            normalized = recurse(field_value)
            if normalized is not None or self.options.include_null:
                out[key] = normalized
        return Matched(out)

    def _fields(self, value: object) -> Iterable[tuple[str, Any]]:
        """Yield every readable field of an object, public or not."""
        seen = set()
        for name, field_value in getattr(value, "__dict__", {}).items():
            seen.add(name)
            yield name, field_value

        for name in self._slot_names(type(value)):
            if name in seen:
                continue
            try:
                field_value = getattr(value, name)
            except AttributeError:
                # Unset slot
                continue
            yield name, field_value

    @classmethod
    def _slot_names(cls, klass: type) -> tuple[str, ...]:
        cached = cls._slots_cache.get(klass)
        if cached is not None:
            return cached

        names: list[str] = []
        for base in reversed(klass.__mro__):
            slots = vars(base).get("__slots__", ())
            if isinstance(slots, str):
                slots = (slots,)
            for slot in slots:
                # Dunder slots hold interpreter or library bookkeeping
                if (slot.startswith("__") and slot.endswith("__")) or slot in names:
                    continue
                # Private slots are stored under their mangled name
                if slot.startswith("__") and not slot.endswith("__"):
                    slot = f"_{base.__name__.lstrip('_')}{slot}"
                names.append(slot)

        return cls._slots_cache.setdefault(klass, tuple(names))


def shape(data: Any) -> Any:  # noqa: ANN401 - operates on JSON trees
    """Recursively separate ordered lists from key-value maps.

    A non-empty dict whose keys are exactly ``0..n-1`` becomes a list; any
    other dict stays a dict with its keys rendered as strings.
    """
    if isinstance(data, list):
        return [shape(item) for item in data]
    if isinstance(data, dict):
        if data and list(data.keys()) == list(range(len(data))):
            return [shape(item) for item in data.values()]
        return {str(key): shape(item) for key, item in data.items()}
    return data


def normalize(value: object, options: NormalizeOptions | None = None) -> JsonValue:
    """Normalize ``value`` with a fresh normalizer using ``options``."""
    return Normalizer(options).normalize(value)
