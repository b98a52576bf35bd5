"""FastAPI application factory.

``create_app`` configures logging, builds the contract services, registers
the exception handlers and serves the generated contract document at
``settings.openapi_url`` in place of FastAPI's own. Operations are added
by the host application with ``include_router``; only endpoints declared
with ``@api_operation`` appear in the document.
"""

from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import Response
from loguru import logger

from src.api.dependencies import build_contract
from src.api.middleware.error_handler import register_exception_handlers
from src.api.utils.responses import ContractDocumentResponse, ORJSONResponse
from src.contract.discovery import MetadataProvider
from src.core.config import Settings, get_settings
from src.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Log application startup and shutdown.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown complete")


def create_app(
    settings: Settings | None = None,
    routers: Sequence[APIRouter] = (),
    provider: MetadataProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().
        routers: Routers to include.
        provider: Metadata provider for the contract services.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    # Setup logging first
    setup_logging(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.contract = build_contract(settings, provider)

    register_exception_handlers(application)

    for router in routers:
        application.include_router(router)

    if settings.openapi_url:

        @application.get(settings.openapi_url, include_in_schema=False)
        async def contract_document(request: Request) -> Response:
            """Serve the contract document generated from the declared operations."""
            contract = request.app.state.contract
            return ContractDocumentResponse(contract.openapi.build(request.app.routes))

    return application
