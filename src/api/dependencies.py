"""Contract services and their FastAPI dependency.

``build_contract`` wires every contract component from the settings once
per application. Route handlers receive the bundle through the
``ContractServices`` annotated type instead of repeating ``Depends()``.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from src.api.emitter import ResponseEmitter
from src.api.openapi import OpenApiBuilder
from src.contract.discovery import AnnotatedMetadataProvider, MetadataProvider
from src.contract.normalizer import NormalizeOptions, Normalizer
from src.contract.responses import ResponseMappingResolver, default_responses_from_config
from src.contract.schema.factory import SchemaFactory
from src.contract.schema.registry import SchemaRegistry
from src.contract.validation.loader import ConstraintLoader
from src.contract.validation.mapper import ConstraintMapper
from src.core.config import Settings


@dataclass(frozen=True, slots=True)
class Contract:
    """Every contract component of one application."""

    provider: MetadataProvider
    resolver: ResponseMappingResolver
    factory: SchemaFactory
    registry: SchemaRegistry
    normalizer: Normalizer
    loader: ConstraintLoader
    emitter: ResponseEmitter
    openapi: OpenApiBuilder


def build_contract(settings: Settings, provider: MetadataProvider | None = None) -> Contract:
    """Create the contract components configured by ``settings``.

    Args:
        settings: Application settings.
        provider: Metadata provider; the annotation-based one by default.

    Returns:
        Contract: The wired components.
    """
    provider = provider or AnnotatedMetadataProvider()
    contract_config = settings.contract_config

    resolver = ResponseMappingResolver(
        provider, default_responses_from_config(contract_config)
    )
    factory = SchemaFactory(
        provider,
        naming=contract_config.schema_naming,
        ref_prefix=contract_config.schema_ref_prefix,
    )
    registry = SchemaRegistry(factory)
    normalizer = Normalizer(NormalizeOptions.from_config(settings.normalizer_config))
    loader = ConstraintLoader(ConstraintMapper(provider))

    return Contract(
        provider=provider,
        resolver=resolver,
        factory=factory,
        registry=registry,
        normalizer=normalizer,
        loader=loader,
        emitter=ResponseEmitter(resolver, normalizer, loader),
        openapi=OpenApiBuilder(
            resolver, registry, title=settings.app_name, version=settings.app_version
        ),
    )


def get_contract(request: Request) -> Contract:
    """Return the contract services of the application serving ``request``.

    Example:
        @app.post("/orders")
        async def create_order(order: CreateOrder, contract: ContractServices):
            contract.loader.assert_valid(order)
    """
    contract: Contract = request.app.state.contract
    return contract


# Type alias for cleaner dependency injection
ContractServices = Annotated[Contract, Depends(get_contract)]
