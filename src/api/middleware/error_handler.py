"""Global exception handlers for the FastAPI application.

Validation failures, whether raised by FastAPI while reading the request
or by the constraint loader, are answered with a 422
``ValidationErrorResponse``. Everything else becomes an ``ErrorResponse``.
"""

import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException

from src.api.schemas.errors import ErrorResponse, ServiceInfo, ValidationErrorResponse
from src.api.utils.responses import ORJSONResponse
from src.contract.validation.loader import Violation
from src.core.config import Settings, get_settings
from src.core.exceptions import (
    ContractError,
    ErrorCode,
    RequestValidationFailed,
    Severity,
)


def get_service_info(settings: Settings) -> ServiceInfo:
    """Create ServiceInfo from application settings.

    Args:
        settings: Application settings

    Returns:
        ServiceInfo: Instance with current service metadata
    """
    return ServiceInfo(
        name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )


def _settings_for(request: Request) -> Settings:
    """Settings of the application serving the request."""
    settings = getattr(request.app.state, "settings", None)
    return settings if isinstance(settings, Settings) else get_settings()


def _validation_response(
    request: Request, violations: list[Violation], title: str
) -> Response:
    logger.warning(
        "Request validation failed",
        method=request.method,
        path=str(request.url.path),
        violation_count=len(violations),
    )
    body = ValidationErrorResponse(title=title, violations=violations)
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body.model_dump(mode="json", by_alias=True),
    )


async def contract_error_handler(request: Request, exc: Exception) -> Response:
    """Handle ContractError exceptions.

    Args:
        request: The FastAPI request that caused the exception
        exc: The ContractError exception to handle

    Returns:
        Response: ORJSONResponse with error details

    Raises:
        TypeError: If exc is not a ContractError instance
    """
    if not isinstance(exc, ContractError):
        raise TypeError(f"Expected ContractError, got {type(exc).__name__}")

    if isinstance(exc, RequestValidationFailed):
        return _validation_response(request, exc.violations, exc.message)

    settings = _settings_for(request)

    log = logger.warning if exc.is_expected else logger.error
    log(
        "Handling {exception_type}: {message}",
        exception_type=type(exc).__name__,
        message=exc.message,
        error_code=exc.error_code,
        fingerprint=exc.fingerprint,
        method=request.method,
        path=str(request.url.path),
    )

    debug_info = None
    if settings.environment == "development":
        debug_info = {
            "stack_trace": exc.stack_trace,
            "error_context": exc.context,
            "exception_type": type(exc).__name__,
        }
        if exc.cause:
            debug_info["cause"] = {
                "type": type(exc.cause).__name__,
                "message": str(exc.cause),
            }

    error_response = ErrorResponse(
        error_code=exc.error_code,
        message=exc.message,
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        instance=str(request.url.path),
        details=exc.context or None,
        severity=exc.severity.value,
        service_info=get_service_info(settings),
        debug_info=debug_info,
    )

    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json"),
    )


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI RequestValidationError exceptions.

    Each pydantic error becomes one violation whose property is the error
    location below the request part (``body.address.zip`` -> ``address.zip``).

    Args:
        request: The FastAPI request that caused the exception
        exc: The RequestValidationError exception to handle

    Returns:
        Response: ORJSONResponse with validation error details

    Raises:
        TypeError: If exc is not a RequestValidationError instance
    """
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    violations = []
    for error in exc.errors():
        location = error.get("loc", ())
        path = ".".join(str(part) for part in location[1:] if part != "__root__")
        violations.append(
            Violation(property=path or "root", message=error.get("msg", "Invalid value"))
        )

    return _validation_response(request, violations, "Invalid request body.")


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException.

    Client errors carry their detail; server errors do not.

    Args:
        request: The FastAPI request that caused the exception
        exc: The HTTPException to handle

    Returns:
        Response: ORJSONResponse with error details

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    settings = _settings_for(request)
    is_server = exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
    severity = Severity.HIGH if is_server else Severity.LOW
    error_code = (
        ErrorCode.INTERNAL_ERROR.value if is_server else f"HTTP_{exc.status_code}"
    )

    logger.warning(
        "HTTP exception",
        status=exc.status_code,
        method=request.method,
        path=str(request.url.path),
        detail=exc.detail,
    )

    error_response = ErrorResponse(
        error_code=error_code,
        message="Something went wrong" if is_server else str(exc.detail),
        status=exc.status_code,
        detail=None if is_server else str(exc.detail),
        instance=str(request.url.path),
        severity=severity.value,
        service_info=get_service_info(settings),
    )

    return ORJSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json"),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle generic exceptions.

    Catches all unhandled exceptions and converts them to a safe error response.
    In production, hides internal error details from clients.

    Args:
        request: The FastAPI request that caused the exception
        exc: The unhandled exception

    Returns:
        Response: ORJSONResponse with generic error message
    """
    settings = _settings_for(request)

    logger.exception(
        "Unhandled exception: {exception_type}",
        exception_type=type(exc).__name__,
        method=request.method,
        path=str(request.url.path),
    )

    if settings.environment == "production":
        message = "An internal server error occurred"
        details = None
        debug_info = None
    else:
        message = f"Internal server error: {type(exc).__name__}"
        details = {"error": str(exc), "type": type(exc).__name__}
        debug_info = {
            "stack_trace": traceback.format_tb(exc.__traceback__),
            "exception_type": type(exc).__name__,
        }

    error_response = ErrorResponse(
        error_code=ErrorCode.INTERNAL_ERROR.value,
        message=message,
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        instance=str(request.url.path),
        details=details,
        severity=Severity.CRITICAL.value,
        service_info=get_service_info(settings),
        debug_info=debug_info,
    )

    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(ContractError, contract_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
