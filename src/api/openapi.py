"""OpenAPI 3.1 document assembly.

Walks a set of routes, keeps those whose endpoint carries an
``@api_operation`` declaration, and describes each one from its metadata:
request body, resolved response table and tag. Every payload type reached
along the way is registered, so ``components.schemas`` holds the transitive
closure of referenced schemas.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from fastapi.routing import APIRoute
from starlette.routing import BaseRoute

from src.contract.discovery import MetadataProvider
from src.contract.metadata import OperationMeta, ResolvedResponse
from src.contract.responses import ResponseMappingResolver
from src.contract.schema.registry import SchemaRegistry
from src.core.constants import JSON_CONTENT_TYPE, OPENAPI_VERSION
from src.core.types import SchemaDocument

DEFAULT_TAG = "default"


@dataclass(frozen=True, slots=True)
class RouteBinding:
    """A path and its HTTP methods bound to an operation function.

    Attributes:
        path: URL template, e.g. ``/orders/{order_id}``.
        methods: HTTP methods served by the endpoint.
        endpoint: The operation function.
        owner: Controller class grouping the operation, if any.
    """

    path: str
    methods: tuple[str, ...]
    endpoint: Callable[..., Any]
    owner: type | None = field(default=None)


def bindings_from_routes(routes: Iterable[BaseRoute | RouteBinding]) -> list[RouteBinding]:
    """Convert FastAPI routes to bindings; other route kinds are ignored."""
    bindings = []
    for route in routes:
        if isinstance(route, RouteBinding):
            bindings.append(route)
        elif isinstance(route, APIRoute):
            bindings.append(
                RouteBinding(
                    path=route.path,
                    methods=tuple(sorted(route.methods or {"GET"})),
                    endpoint=route.endpoint,
                )
            )
    return bindings


class OpenApiBuilder:
    """Builds the contract document for a set of routes.

    Args:
        resolver: Response resolver; its provider reads the declarations.
        registry: Schema registry collecting component schemas.
        title: Document title.
        version: API version.
    """

    def __init__(
        self,
        resolver: ResponseMappingResolver,
        registry: SchemaRegistry,
        title: str = "API",
        version: str = "0.1.0",
    ) -> None:
        self.resolver = resolver
        self.registry = registry
        self.title = title
        self.version = version

    @property
    def provider(self) -> MetadataProvider:
        return self.resolver.provider

    def build(self, routes: Iterable[BaseRoute | RouteBinding]) -> SchemaDocument:
        """Return the full OpenAPI 3.1 document for ``routes``.

        Raises:
            SchemaDerivationError: If a declared payload type cannot be derived.
            SchemaNameCollisionError: If two payload types share a schema name.
        """
        paths: dict[str, dict[str, Any]] = {}
        tags: dict[str, dict[str, str]] = {}

        for binding in bindings_from_routes(routes):
            operation = self.provider.describe_operation(binding.endpoint)
            if operation is None:
                continue
            methods = binding.methods or ("GET",)
            for method in methods:
                document = self.operation_object(binding, operation, tags)
                if len(methods) > 1:
                    document["operationId"] = f"{document['operationId']}_{method.lower()}"
                paths.setdefault(binding.path, {})[method.lower()] = document

        return {
            "openapi": OPENAPI_VERSION,
            "info": {"title": self.title, "version": self.version},
            "paths": paths,
            "components": {"schemas": self.registry.export()},
            "tags": list(tags.values()),
        }

    def operation_object(
        self,
        binding: RouteBinding,
        operation: OperationMeta,
        tags: dict[str, dict[str, str]],
    ) -> SchemaDocument:
        """Describe one operation and record its tag."""
        resource = self.provider.describe_resource(binding.owner) if binding.owner else None
        tag = operation.tag or (resource.name if resource else None)
        if tag is None:
            tag = binding.owner.__name__ if binding.owner else DEFAULT_TAG
        if tag not in tags:
            tags[tag] = {"name": tag}
            if resource is not None and resource.description and tag == resource.name:
                tags[tag]["description"] = resource.description

        endpoint_name = getattr(binding.endpoint, "__name__", "operation")
        operation_id = (
            f"{binding.owner.__name__}::{endpoint_name}" if binding.owner else endpoint_name
        )

        out: SchemaDocument = {
            "operationId": operation_id,
            "summary": operation.summary,
            "tags": [tag],
        }
        if operation.description:
            out["description"] = operation.description
        if operation.deprecated:
            out["deprecated"] = True

        request = self.provider.resolve(operation.request)
        if request is not None:
            self.registry.ensure(request)
            out["requestBody"] = {
                "required": True,
                "content": {
                    JSON_CONTENT_TYPE: {
                        "schema": {"$ref": self.registry.factory.ref_for(request)}
                    }
                },
            }

        table = self.resolver.resolve_operation(binding.endpoint)
        responses = {str(entry.status): self.response_object(entry) for entry in table}
        out["responses"] = responses or {"200": {"description": "OK"}}
        return out

    def response_object(self, entry: ResolvedResponse) -> SchemaDocument:
        """Describe one resolved response."""
        response: SchemaDocument = {
            "description": entry.description or entry.name or _status_phrase(entry.status)
        }
        if entry.payload_type is not None:
            self.registry.ensure(entry.payload_type)
            response["content"] = {
                entry.content_type: {
                    "schema": {"$ref": self.registry.factory.ref_for(entry.payload_type)}
                }
            }
        return response


def _status_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""
