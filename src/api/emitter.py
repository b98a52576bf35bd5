"""Turns operation results into HTTP responses.

The response mapping is chosen from the operation's resolved table by the
type of the returned value. Pydantic results are dumped by alias; anything
else goes through the normalizer. Wrapped endpoints also have their
declared request payload validated before they run.
"""

import functools
import inspect
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from fastapi.responses import Response
from pydantic import BaseModel

from src.api.utils.responses import ORJSONResponse
from src.contract.metadata import ResolvedResponse
from src.contract.normalizer import Normalizer
from src.contract.responses import ResponseMappingResolver
from src.contract.validation.loader import ConstraintLoader
from src.contract.validation.mapper import ConstraintMapper
from src.core.exceptions import ResponseEmissionError


class ResponseEmitter:
    """Renders results according to resolved response mappings.

    Args:
        resolver: Resolves and caches operation response tables.
        normalizer: Normalizer for results that are not pydantic models.
        loader: Validates request payloads of wrapped endpoints.
    """

    def __init__(
        self,
        resolver: ResponseMappingResolver,
        normalizer: Normalizer | None = None,
        loader: ConstraintLoader | None = None,
    ) -> None:
        self.resolver = resolver
        self.normalizer = normalizer or Normalizer()
        self.loader = loader or ConstraintLoader(ConstraintMapper(resolver.provider))

    def emit(self, result: object, table: Sequence[ResolvedResponse]) -> Response:
        """Render ``result`` with the mapping selected from ``table``.

        Args:
            result: The value returned by the operation.
            table: The operation's resolved response table.

        Returns:
            Response: The HTTP response, or ``result`` itself when it
                already is one.

        Raises:
            ResponseEmissionError: If the selected mapping is a streaming one.
        """
        if isinstance(result, Response):
            return result

        mapping = self.resolver.select(table, result)
        if mapping.stream:
            raise ResponseEmissionError(
                "Streaming responses are not supported by this emitter",
                {"status": mapping.status, "content_type": mapping.content_type},
            )

        if result is None and mapping.payload_type is None:
            return Response(status_code=mapping.status, media_type=mapping.content_type)

        if isinstance(result, BaseModel):
            content = result.model_dump(mode="json", by_alias=True)
        else:
            content = self.normalizer.normalize(result)

        return ORJSONResponse(
            content=content, status_code=mapping.status, media_type=mapping.content_type
        )

    def emit_for(self, operation: Callable[..., Any], result: object) -> Response:
        """Render ``result`` using the response table of ``operation``."""
        return self.emit(result, self.resolver.resolve_operation(operation))

    def validate_request(
        self, operation: Callable[..., Any], arguments: Sequence[object]
    ) -> None:
        """Validate the arguments that carry the operation's declared request type.

        Raises:
            RequestValidationFailed: If a request payload violates its rules.
        """
        provider = self.resolver.provider
        meta = provider.describe_operation(operation)
        request_type = provider.resolve(meta.request) if meta is not None else None
        if request_type is None:
            return
        for argument in arguments:
            if isinstance(argument, request_type):
                self.loader.assert_valid(argument)

    def wrap[**P](
        self, endpoint: Callable[P, Awaitable[Any]]
    ) -> Callable[P, Awaitable[Response]]:
        """Wrap an async endpoint so its return value is emitted by contract.

        The wrapper keeps the endpoint's parameters and declarations, so
        FastAPI injects the same dependencies and the contract document
        still finds the operation metadata. The declared request payload is
        validated first; ``RequestValidationFailed`` reaches the 422 handler.

        Example:
            >>> @router.post("/orders")
            ... @emitter.wrap
            ... @api_operation(summary="Create an order", response=OrderDto)
            ... async def create_order(body: CreateOrder) -> OrderDto: ...
        """

        @functools.wraps(endpoint)
        async def emitting(*args: P.args, **kwargs: P.kwargs) -> Response:
            self.validate_request(endpoint, [*args, *kwargs.values()])
            result = await endpoint(*args, **kwargs)
            return self.emit_for(endpoint, result)

        # The declared return type is a payload, not a FastAPI response model
        emitting.__signature__ = inspect.signature(endpoint).replace(  # type: ignore[attr-defined]
            return_annotation=Response
        )
        return emitting
