"""Declarative metadata records shared by every contract component.

The records in this module carry no behavior of their own. They are
attached to payload classes and operation functions at import time and
read back by a metadata provider:

- **PropertyMeta**: per-field schema and validation hints, attached with
  ``typing.Annotated[int, PropertyMeta(...)]``
- **ResponseMeta**: one declared response shape, attached with
  ``@api_response(...)`` on a payload class or an operation function
- **OperationMeta**: one API operation, attached with ``@api_operation(...)``
- **ResourceMeta**: tag name and description for a group of operations
- **ResolvedResponse**: one fully-defaulted row of a resolved response table

All records are frozen pydantic models so they cannot change after the
declarations that produced them have been evaluated.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler

from src.core.constants import DEFAULT_STATUS, JSON_CONTENT_TYPE, NDJSON_CONTENT_TYPE
from src.core.types import TypeRef

# Attribute names used to attach declarations to classes and functions
RESPONSES_ATTR = "__contract_responses__"
OPERATION_ATTR = "__contract_operation__"
RESOURCE_ATTR = "__contract_resource__"

type TypeTag = Literal["string", "integer", "number", "boolean", "array", "object"]
type ResponseSource = Literal["method", "type", "default"]
type EnumType = type[Enum]


class PropertyMeta(BaseModel):
    """Schema and validation hints for one property of a payload type."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str | None = None
    serialized_name: str | None = None
    description: str | None = None
    type: TypeTag | None = None
    format: str | None = None
    nullable: bool = False
    items_type: TypeTag | None = None
    items_ref: TypeRef | None = None
    ref: TypeRef | None = None
    enum: list[Any] | None = None
    enum_class: EnumType | None = None
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    pattern: str | None = None
    minimum: float | None = None
    maximum: float | None = None
    exclusive_minimum: bool | None = None
    exclusive_maximum: bool | None = None
    multiple_of: float | None = Field(default=None, gt=0)
    min_items: int | None = Field(default=None, ge=0)
    max_items: int | None = Field(default=None, ge=0)
    unique_items: bool | None = None
    required: bool | None = None
    default: Any = None
    example: Any = None
    examples: list[Any] | None = None
    read_only: bool | None = None
    write_only: bool | None = None
    deprecated: bool | None = None
    deprecation_reason: str | None = None
    order: int | None = None
    x: dict[str, Any] | None = None

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source: Any, handler: GetCoreSchemaHandler, /  # noqa: ANN401
    ) -> Any:  # noqa: ANN401
        # Also reached when an instance annotates a pydantic field; the
        # field keeps its own schema
        return handler(source)

    def wire_name(self, attribute: str) -> str:
        """Return the name this property carries on the wire."""
        return self.serialized_name or self.name or attribute


class ResponseMeta(BaseModel):
    """One declared response shape. A null payload type means "no body"."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: int = Field(default=DEFAULT_STATUS, ge=100, le=599)
    payload_type: TypeRef | None = None
    content_type: str | None = None
    stream: bool = False
    name: str | None = None
    description: str | None = None


class DefaultResponse(BaseModel):
    """A globally configured response applied to every operation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    payload_type: TypeRef | None = None
    content_type: str | None = None
    stream: bool = False
    description: str | None = None


class ResolvedResponse(BaseModel):
    """A fully-defaulted response table row; content type and stream are set."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: int
    payload_type: type | None = None
    content_type: str
    stream: bool
    name: str | None = None
    description: str | None = None
    source: ResponseSource


class OperationMeta(BaseModel):
    """Metadata describing one API operation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    summary: str
    description: str | None = None
    tag: str | None = None
    request: TypeRef | None = None
    responses: list[TypeRef] = Field(default_factory=list)
    stream: bool = False
    status: list[int] = Field(default_factory=lambda: [DEFAULT_STATUS])
    deprecated: bool = False


class ResourceMeta(BaseModel):
    """Tag name and description for the operations of one controller."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    description: str | None = None


def default_content_type(stream: bool) -> str:
    """Return the content type implied by the stream flag."""
    return NDJSON_CONTENT_TYPE if stream else JSON_CONTENT_TYPE


def enum_wire_value(member: Enum) -> Any:  # noqa: ANN401 - enum values are untyped
    """Return the value an enumeration member carries on the wire.

    The member's value is used when it is a plain scalar; otherwise the
    symbolic name is used.
    """
    value = member.value
    if isinstance(value, str | int | float | bool):
        return value
    return member.name


def api_response[T](
    status: int = DEFAULT_STATUS,
    payload_type: TypeRef | None = None,
    content_type: str | None = None,
    stream: bool = False,
    name: str | None = None,
    description: str | None = None,
) -> Callable[[T], T]:
    """Declare a response on a payload class or an operation function.

    The decorator may be stacked; declarations keep their source order.

    Example:
        >>> @api_response(status=422, description="Validation failed")
        ... class ValidationErrorDto: ...
    """
    meta = ResponseMeta(
        status=status,
        payload_type=payload_type,
        content_type=content_type,
        stream=stream,
        name=name,
        description=description,
    )

    def decorator(target: T) -> T:
        # Only the target's own declarations count, never inherited ones
        own = vars(target).get(RESPONSES_ATTR, ())
        # Decorators apply bottom-up, so prepend to keep source order
        setattr(target, RESPONSES_ATTR, (meta, *own))
        return target

    return decorator


def api_operation[F: Callable[..., Any]](
    summary: str,
    description: str | None = None,
    tag: str | None = None,
    request: TypeRef | None = None,
    response: TypeRef | list[TypeRef] | None = None,
    stream: bool = False,
    status: list[int] | None = None,
    deprecated: bool = False,
) -> Callable[[F], F]:
    """Declare an API operation on a request-handling function."""
    if response is None:
        responses: list[TypeRef] = []
    elif isinstance(response, list):
        responses = response
    else:
        responses = [response]

    meta = OperationMeta(
        summary=summary,
        description=description,
        tag=tag,
        request=request,
        responses=responses,
        stream=stream,
        status=status or [DEFAULT_STATUS],
        deprecated=deprecated,
    )

    def decorator(func: F) -> F:
        setattr(func, OPERATION_ATTR, meta)
        return func

    return decorator


def api_resource[T](
    name: str | None = None, description: str | None = None
) -> Callable[[T], T]:
    """Name the tag used for the operations defined on a controller class."""
    meta = ResourceMeta(name=name, description=description)

    def decorator(target: T) -> T:
        setattr(target, RESOURCE_ATTR, meta)
        return target

    return decorator
