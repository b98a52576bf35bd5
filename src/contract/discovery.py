"""Metadata discovery: reading declarations back off classes and functions.

Every contract component depends on the ``MetadataProvider`` protocol
rather than on how declarations are stored. ``AnnotatedMetadataProvider``
is the default implementation; it reads ``typing.Annotated`` property
metadata and the attributes written by the ``api_*`` decorators.
"""

import importlib
import inspect
import typing
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Protocol, get_args, get_origin

from loguru import logger

from src.contract.metadata import (
    OPERATION_ATTR,
    RESOURCE_ATTR,
    RESPONSES_ATTR,
    OperationMeta,
    PropertyMeta,
    ResourceMeta,
    ResponseMeta,
)
from src.core.types import TypeRef

# Unevaluated class-level annotations
_CLASSVAR_PREFIXES = ("ClassVar", "typing.ClassVar")


@dataclass(frozen=True, slots=True)
class PropertyDescriptor:
    """One declared attribute of a payload type.

    Attributes:
        name: Attribute name as declared on the class.
        annotation: The static type with ``Annotated`` metadata stripped.
        owner: The class being described.
        index: Position in declaration order, base classes first.
        meta: Attached property metadata, or None when undeclared.
    """

    name: str
    annotation: Any
    owner: type
    index: int
    meta: PropertyMeta | None = None


class MetadataProvider(Protocol):
    """Capability the contract core uses to read declared metadata."""

    def resolve(self, ref: TypeRef | None) -> type | None:
        """Resolve a type reference, returning None when it cannot be loaded."""
        ...

    def describe_type(self, cls: type) -> Sequence[PropertyDescriptor]:
        """Return the declared properties of a payload type in source order."""
        ...

    def describe_type_responses(self, cls: type) -> Sequence[ResponseMeta]:
        """Return the responses a payload type declares about itself."""
        ...

    def describe_operation(self, operation: Callable[..., Any]) -> OperationMeta | None:
        """Return the operation metadata of a request handler, if any."""
        ...

    def describe_operation_responses(
        self, operation: Callable[..., Any]
    ) -> Sequence[ResponseMeta]:
        """Return the responses declared directly on a request handler."""
        ...

    def describe_resource(self, owner: object) -> ResourceMeta | None:
        """Return the resource (tag) metadata of a controller, if any."""
        ...


def resolve_type_ref(ref: TypeRef | None) -> type | None:
    """Resolve a class or an import path to a class.

    Accepts ``"pkg.module:Qualified.Name"`` and ``"pkg.module.Name"``.

    Args:
        ref: The reference to resolve.

    Returns:
        type | None: The class, or None if the reference cannot be loaded.
    """
    if ref is None:
        return None
    if isinstance(ref, type):
        return ref

    if ":" in ref:
        module_name, _, qualname = ref.partition(":")
    else:
        module_name, _, qualname = ref.rpartition(".")
    if not module_name or not qualname:
        logger.debug("Unresolvable type reference {}", ref)
        return None

    try:
        target: object = importlib.import_module(module_name)
        for part in qualname.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError, ValueError) as e:
        logger.debug("Unresolvable type reference {}: {}", ref, e)
        return None

    return target if isinstance(target, type) else None


def _split_annotated(annotation: Any) -> tuple[Any, PropertyMeta | None]:  # noqa: ANN401
    """Strip ``Annotated`` and return the bare type with its PropertyMeta."""
    if get_origin(annotation) is not Annotated:
        return annotation, None
    bare, *extras = get_args(annotation)
    meta = next((e for e in extras if isinstance(e, PropertyMeta)), None)
    return bare, meta


class AnnotatedMetadataProvider:
    """Reads declarations written with ``Annotated`` and the ``api_*`` decorators."""

    def resolve(self, ref: TypeRef | None) -> type | None:
        """Resolve a type reference, returning None when it cannot be loaded."""
        return resolve_type_ref(ref)

    def describe_type(self, cls: type) -> list[PropertyDescriptor]:
        """Return every annotated attribute of ``cls`` in declaration order.

        Args:
            cls: The payload class to describe.

        Returns:
            list[PropertyDescriptor]: One descriptor per attribute, including
                attributes that carry no PropertyMeta.
        """
        try:
            hints = typing.get_type_hints(cls, include_extras=True)
        except (NameError, TypeError) as e:
            # Forward references that cannot be evaluated: fall back to raw
            logger.debug("Using raw annotations for {}: {}", cls.__qualname__, e)
            hints = {}
            for base in reversed(cls.__mro__):
                hints.update(inspect.get_annotations(base))

        descriptors: list[PropertyDescriptor] = []
        for name, annotation in hints.items():
            # Dunder and name-mangled attributes are library bookkeeping
            if name.startswith("__"):
                continue
            if get_origin(annotation) is ClassVar or annotation is ClassVar:
                continue
            if isinstance(annotation, str) and annotation.startswith(_CLASSVAR_PREFIXES):
                continue
            bare, meta = _split_annotated(annotation)
            descriptors.append(
                PropertyDescriptor(
                    name=name, annotation=bare, owner=cls, index=len(descriptors), meta=meta
                )
            )
        return descriptors

    def describe_type_responses(self, cls: type) -> list[ResponseMeta]:
        """Return the responses declared on ``cls`` itself."""
        return list(vars(cls).get(RESPONSES_ATTR, ()))

    def describe_operation(self, operation: Callable[..., Any]) -> OperationMeta | None:
        """Return the OperationMeta attached by ``@api_operation``."""
        return getattr(operation, OPERATION_ATTR, None)

    def describe_operation_responses(
        self, operation: Callable[..., Any]
    ) -> list[ResponseMeta]:
        """Return the responses declared on the handler with ``@api_response``."""
        return list(getattr(operation, RESPONSES_ATTR, ()))

    def describe_resource(self, owner: object) -> ResourceMeta | None:
        """Return the ResourceMeta attached by ``@api_resource``."""
        return getattr(owner, RESOURCE_ATTR, None)
