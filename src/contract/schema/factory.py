"""Schema derivation from declarative property metadata.

``SchemaFactory.build`` turns the PropertyMeta declarations of one payload
type into an OpenAPI 3.1 component schema. Only properties carrying a
PropertyMeta appear in the document; undeclared attributes stay out of the
wire contract.

Documents are cached per type for the life of the process. Derivation is
pure, so two threads deriving the same type concurrently produce equal
documents and the first one stored wins.
"""

import copy
import types
from collections.abc import Sequence, Set
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Union, get_args, get_origin

from src.contract.discovery import (
    AnnotatedMetadataProvider,
    MetadataProvider,
    PropertyDescriptor,
)
from src.contract.metadata import PropertyMeta, TypeTag, enum_wire_value
from src.core.constants import EXTENSION_PREFIX, SCHEMA_REF_PREFIX
from src.core.exceptions import SchemaDerivationError
from src.core.types import SchemaDocument, TypeRef

_UNORDERED = float("inf")


def qualified_name(cls: type) -> str:
    """Return ``module.Qualname`` for a class."""
    return f"{cls.__module__}.{cls.__qualname__}"


def unwrap_optional(annotation: Any) -> Any:  # noqa: ANN401 - inspects typing objects
    """Strip ``None`` from ``X | None`` / ``Optional[X]`` annotations."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


def infer_type_tag(annotation: Any) -> TypeTag:  # noqa: ANN401 - inspects typing objects
    """Infer a schema type tag from a static Python type.

    Args:
        annotation: The property's declared type.

    Returns:
        TypeTag: string, integer, number, boolean or array, else object.
    """
    annotation = unwrap_optional(annotation)
    target = get_origin(annotation) or annotation

    if not isinstance(target, type):
        return "object"
    if issubclass(target, Enum):
        return _enum_type_tag(target)
    # bool is an int subclass; test it first
    if issubclass(target, bool):
        return "boolean"
    if issubclass(target, str):
        return "string"
    if issubclass(target, int):
        return "integer"
    if issubclass(target, float | Decimal):
        return "number"
    if issubclass(target, list | tuple | Set) or (
        issubclass(target, Sequence) and not issubclass(target, str | bytes)
    ):
        return "array"
    return "object"


def _enum_type_tag(enum_class: type[Enum]) -> TypeTag:
    """Type tag of an enumeration's wire values; string unless all are numbers."""
    values = [enum_wire_value(member) for member in enum_class]
    if values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return "integer"
    if values and all(isinstance(v, int | float) and not isinstance(v, bool) for v in values):
        return "number"
    return "string"


class SchemaFactory:
    """Derives and caches schema documents for payload types.

    Args:
        provider: Metadata provider used to read property declarations.
        naming: ``"short"`` names schemas by class name, ``"qualified"`` by
            module and qualified name.
        ref_prefix: Prefix for ``$ref`` pointers to other schemas.
    """

    def __init__(
        self,
        provider: MetadataProvider | None = None,
        naming: Literal["short", "qualified"] = "short",
        ref_prefix: str = SCHEMA_REF_PREFIX,
    ) -> None:
        self.provider = provider or AnnotatedMetadataProvider()
        self.naming = naming
        self.ref_prefix = ref_prefix
        self._cache: dict[type, SchemaDocument] = {}

    def build(self, cls: type) -> SchemaDocument:
        """Return the schema document for a payload type.

        Args:
            cls: The payload class.

        Returns:
            SchemaDocument: ``{"type": "object", "properties": ..., "required": ...}``;
                a copy, so callers cannot alter the cached document.

        Raises:
            SchemaDerivationError: If ``cls`` is not a class or declares the
                same wire name twice.
        """
        if not isinstance(cls, type):
            raise SchemaDerivationError(
                f"Payload type must be a class, got {type(cls).__name__}",
                type_name=repr(cls),
                step="resolve",
            )

        document = self._cache.get(cls)
        if document is None:
            document = self._cache.setdefault(cls, self._derive(cls))
        return copy.deepcopy(document)

    def schema_name(self, cls: type) -> str:
        """Return the component name a payload type is exported under."""
        if self.naming == "qualified":
            return qualified_name(cls).replace("<locals>.", "")
        return cls.__name__

    def ref_for(self, cls: type) -> str:
        """Return the ``$ref`` pointer for a payload type."""
        return f"{self.ref_prefix}{self.schema_name(cls)}"

    def declared_properties(self, cls: type) -> list[PropertyDescriptor]:
        """Return the properties of ``cls`` that carry metadata, in schema order.

        Explicit ``order`` hints sort ascending; ties keep declaration order;
        unordered properties come last.
        """
        declared = [d for d in self.provider.describe_type(cls) if d.meta is not None]
        return sorted(
            declared,
            key=lambda d: (
                d.meta.order if d.meta is not None and d.meta.order is not None else _UNORDERED,
                d.index,
            ),
        )

    def _derive(self, cls: type) -> SchemaDocument:
        properties: dict[str, SchemaDocument] = {}
        required: list[str] = []

        for descriptor in self.declared_properties(cls):
            meta = descriptor.meta
            if meta is None:
                continue
            wire = meta.wire_name(descriptor.name)
            if wire in properties:
                raise SchemaDerivationError(
                    f"Wire name '{wire}' is declared twice on {cls.__qualname__}",
                    type_name=qualified_name(cls),
                    step="wire_name",
                )
            properties[wire] = self.property_schema(descriptor, meta)
            # Required is presence only; a required property may still be null
            if meta.required and wire not in required:
                required.append(wire)

        document: SchemaDocument = {"type": "object", "properties": properties}
        if required:
            document["required"] = required
        return document

    def property_schema(
        self, descriptor: PropertyDescriptor, meta: PropertyMeta
    ) -> SchemaDocument:
        """Build the schema fragment for one declared property."""
        object_ref = self._resolve_ref(meta.ref)
        type_tag = meta.type or (None if object_ref else infer_type_tag(descriptor.annotation))

        schema: SchemaDocument = {}
        if object_ref is not None:
            schema["$ref"] = self.ref_for(object_ref)
        if type_tag:
            schema["type"] = type_tag
        if meta.format:
            schema["format"] = meta.format
        if meta.description:
            schema["description"] = meta.description
        if meta.deprecated:
            schema["deprecated"] = True
        if meta.read_only is not None:
            schema["readOnly"] = meta.read_only
        if meta.write_only is not None:
            schema["writeOnly"] = meta.write_only
        if meta.example is not None:
            schema["example"] = meta.example
        if meta.examples:
            schema["examples"] = list(meta.examples)
        if meta.default is not None:
            schema["default"] = meta.default

        if meta.nullable:
            if isinstance(schema.get("type"), str):
                schema["type"] = ["null", schema["type"]]
            else:
                schema["nullable"] = True

        if type_tag == "string":
            _copy_set(schema, meta, min_length="minLength", max_length="maxLength")
            if meta.pattern is not None:
                schema["pattern"] = meta.pattern

        if type_tag in ("integer", "number"):
            if meta.minimum is not None:
                schema["minimum"] = meta.minimum
                if meta.exclusive_minimum:
                    schema["exclusiveMinimum"] = True
            if meta.maximum is not None:
                schema["maximum"] = meta.maximum
                if meta.exclusive_maximum:
                    schema["exclusiveMaximum"] = True
            if meta.multiple_of is not None:
                schema["multipleOf"] = meta.multiple_of

        if meta.enum:
            schema["enum"] = list(meta.enum)
        elif meta.enum_class is not None:
            schema["enum"] = [enum_wire_value(member) for member in meta.enum_class]
            schema.setdefault("type", "string")

        if type_tag == "array":
            items: SchemaDocument = {}
            if meta.items_type:
                items["type"] = meta.items_type
            items_ref = self._resolve_ref(meta.items_ref)
            if items_ref is not None:
                items = {"$ref": self.ref_for(items_ref)}
            if items:
                schema["items"] = items
            _copy_set(schema, meta, min_items="minItems", max_items="maxItems")
            if meta.unique_items:
                schema["uniqueItems"] = True

        for key, value in (meta.x or {}).items():
            if str(key).startswith(EXTENSION_PREFIX):
                schema[key] = value

        return schema

    def _resolve_ref(self, ref: TypeRef | None) -> type | None:
        return self.provider.resolve(ref) if ref is not None else None


def _copy_set(schema: SchemaDocument, meta: PropertyMeta, **keywords: str) -> None:
    """Copy non-null metadata attributes into schema keywords."""
    for attribute, keyword in keywords.items():
        value = getattr(meta, attribute)
        if value is not None:
            schema[keyword] = value
