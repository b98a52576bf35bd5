"""Response-mapping precedence resolution.

Merges response declarations from three tiers into one status-keyed table,
sorted by status code. The first tier to claim a status code wins:

1. **method**: ``@api_response`` declarations on the operation function
2. **type**: the response each payload type declares about itself
3. **default**: globally configured responses

Later tiers never override an entry already present for a status, so two
payload types cannot share a status code within one operation.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from loguru import logger

from src.contract.discovery import AnnotatedMetadataProvider, MetadataProvider
from src.contract.metadata import (
    DefaultResponse,
    ResolvedResponse,
    ResponseMeta,
    ResponseSource,
    default_content_type,
)
from src.core.config import ContractConfig
from src.core.constants import DEFAULT_STATUS, JSON_CONTENT_TYPE
from src.core.types import TypeRef

IMPLICIT_RESPONSE = ResolvedResponse(
    status=DEFAULT_STATUS,
    payload_type=None,
    content_type=JSON_CONTENT_TYPE,
    stream=False,
    source="default",
)


def default_responses_from_config(config: ContractConfig) -> dict[int, DefaultResponse]:
    """Convert configured default responses into DefaultResponse records."""
    return {
        status: DefaultResponse(
            payload_type=entry.payload_type,
            content_type=entry.content_type,
            stream=entry.stream,
            description=entry.description,
        )
        for status, entry in config.default_responses.items()
    }


class ResponseMappingResolver:
    """Builds resolved response tables for operations.

    Args:
        provider: Metadata provider used to read type-level declarations.
        global_defaults: Responses applied when no other tier claims a status.
    """

    def __init__(
        self,
        provider: MetadataProvider | None = None,
        global_defaults: Mapping[int, DefaultResponse] | None = None,
    ) -> None:
        self.provider = provider or AnnotatedMetadataProvider()
        self.global_defaults = dict(global_defaults or {})
        self._tables: dict[Callable[..., Any], tuple[ResolvedResponse, ...]] = {}

    def resolve(
        self,
        method_level: Sequence[ResponseMeta],
        type_level_refs: Sequence[TypeRef],
        global_defaults: Mapping[int, DefaultResponse] | None = None,
    ) -> list[ResolvedResponse]:
        """Merge the three tiers into one table sorted by status code.

        Args:
            method_level: Responses declared on the operation itself.
            type_level_refs: Payload types whose own declarations contribute.
            global_defaults: Overrides the resolver's configured defaults.

        Returns:
            list[ResolvedResponse]: One fully-defaulted entry per status code.
        """
        defaults = self.global_defaults if global_defaults is None else global_defaults
        table: dict[int, ResolvedResponse] = {}

        for meta in method_level:
            table[meta.status] = self._from_meta(meta, "method")

        for ref in type_level_refs:
            entry = self._type_level(ref)
            if entry is not None:
                table.setdefault(entry.status, entry)

        # Sorted so the outcome never depends on the mapping's insertion order
        for status in sorted(defaults):
            if status in table:
                continue
            default = defaults[status]
            table[status] = ResolvedResponse(
                status=status,
                payload_type=self.provider.resolve(default.payload_type),
                content_type=default.content_type or default_content_type(default.stream),
                stream=default.stream,
                description=default.description,
                source="default",
            )

        return [table[status] for status in sorted(table)]

    def resolve_operation(self, operation: Callable[..., Any]) -> list[ResolvedResponse]:
        """Resolve and cache the response table of a request handler.

        Args:
            operation: A function decorated with ``@api_operation`` and/or
                ``@api_response``.

        Returns:
            list[ResolvedResponse]: The operation's resolved response table.
        """
        cached = self._tables.get(operation)
        if cached is None:
            op_meta = self.provider.describe_operation(operation)
            table = self.resolve(
                self.provider.describe_operation_responses(operation),
                op_meta.responses if op_meta is not None else [],
            )
            # Concurrent first resolutions produce equal tables; first write wins
            cached = self._tables.setdefault(operation, tuple(table))
        return list(cached)

    def select(self, table: Sequence[ResolvedResponse], result: object) -> ResolvedResponse:
        """Pick the response used to emit a concrete result.

        Args:
            table: A resolved response table, in its stored order.
            result: The value returned by the operation.

        Returns:
            ResolvedResponse: The first entry whose payload type accepts the
                result, else the first entry, else an implicit 200 JSON entry.
        """
        for entry in table:
            if entry.payload_type is not None and isinstance(result, entry.payload_type):
                return entry
        return table[0] if table else IMPLICIT_RESPONSE

    def _from_meta(self, meta: ResponseMeta, source: ResponseSource) -> ResolvedResponse:
        return ResolvedResponse(
            status=meta.status,
            payload_type=self.provider.resolve(meta.payload_type),
            content_type=meta.content_type or default_content_type(meta.stream),
            stream=meta.stream,
            name=meta.name,
            description=meta.description,
            source=source,
        )

    def _type_level(self, ref: TypeRef) -> ResolvedResponse | None:
        cls = self.provider.resolve(ref)
        if cls is None:
            logger.debug("Skipping unresolvable response type {}", ref)
            return None

        declared = self.provider.describe_type_responses(cls)
        if not declared:
            # Undeclared payload types answer 200 with a JSON body
            return ResolvedResponse(
                status=DEFAULT_STATUS,
                payload_type=cls,
                content_type=JSON_CONTENT_TYPE,
                stream=False,
                source="type",
            )

        meta = declared[0]
        return ResolvedResponse(
            status=meta.status,
            payload_type=cls,
            content_type=meta.content_type or default_content_type(meta.stream),
            stream=meta.stream,
            name=meta.name,
            description=meta.description,
            source="type",
        )
