"""Standardized error response schemas.

Every error the API returns is one of the two bodies below. Both declare
their own response status, so listing them as operation responses (or as
configured default responses) documents them without further
configuration:

- **ErrorResponse** (500): any error other than a validation failure
- **ValidationErrorResponse** (422): field-level validation violations

The models are regular pydantic models; the ``PropertyMeta`` annotations
describe their wire contract to the schema factory.
"""

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, Field

from src.contract.metadata import PropertyMeta, api_response
from src.contract.validation.loader import Violation


class ServiceInfo(BaseModel):
    """Identifies the service that produced an error."""

    name: Annotated[
        str,
        PropertyMeta(description="Name of the service", example="DTO Contract", required=True),
    ]
    version: Annotated[
        str,
        PropertyMeta(description="Version of the service", example="0.1.0", required=True),
    ]
    environment: Annotated[
        str,
        PropertyMeta(
            description="Environment where the service is running",
            enum=["development", "staging", "production"],
            required=True,
        ),
    ]


@api_response(status=500, name="error", description="Unexpected error")
class ErrorResponse(BaseModel):
    """Error body for everything except validation failures."""

    error_code: Annotated[
        str,
        PropertyMeta(
            description="Unique error code identifying the error type",
            example="INTERNAL_ERROR",
            required=True,
            order=0,
        ),
    ]
    message: Annotated[
        str,
        PropertyMeta(
            description="Error message",
            example="Something went wrong",
            required=True,
            order=1,
        ),
    ]
    status: Annotated[
        int,
        PropertyMeta(description="HTTP status code", example=500, minimum=100, maximum=599),
    ] = 500
    detail: Annotated[
        str | None,
        PropertyMeta(description="Client-safe detail; absent for server errors", nullable=True),
    ] = None
    instance: Annotated[
        str | None,
        PropertyMeta(description="Path of the request that failed", example="/orders"),
    ] = None
    details: Annotated[
        dict[str, Any] | None,
        PropertyMeta(description="Additional error context", type="object", nullable=True),
    ] = None
    timestamp: Annotated[
        datetime,
        PropertyMeta(
            description="When the error occurred",
            type="string",
            format="date-time",
            example="2024-06-14T12:00:00+00:00",
        ),
    ] = Field(default_factory=lambda: datetime.now(UTC))
    severity: Annotated[
        str | None,
        PropertyMeta(description="Error severity", enum=["LOW", "MEDIUM", "HIGH", "CRITICAL"]),
    ] = None
    service_info: Annotated[
        ServiceInfo | None,
        PropertyMeta(description="The service that produced the error", ref=ServiceInfo),
    ] = None
    debug_info: Annotated[
        dict[str, Any] | None,
        PropertyMeta(
            description="Debug information, populated in development only",
            type="object",
            nullable=True,
        ),
    ] = None


@api_response(
    status=422,
    name="validation_error",
    description="Standardized response for validation errors",
)
class ValidationErrorResponse(BaseModel):
    """Error body listing every violated rule."""

    type: Annotated[
        str, PropertyMeta(description="Error type", example="Validation error")
    ] = "Validation error"
    title: Annotated[
        str, PropertyMeta(description="Error title", example="Invalid request body.")
    ] = "Invalid request body."
    status: Annotated[
        int, PropertyMeta(description="HTTP status code", example=422)
    ] = 422
    error_code: Annotated[
        str, PropertyMeta(description="Machine-readable error code", example="VALIDATION_ERROR")
    ] = "VALIDATION_ERROR"
    violations: Annotated[
        list[Violation],
        PropertyMeta(description="List of field-level violations", items_ref=Violation),
    ] = Field(default_factory=list)
