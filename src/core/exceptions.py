"""Structured exception hierarchy for consistent error handling.

This module defines the exception system for the contract engine. Almost
everything the engine cannot interpret degrades gracefully (the offending
reference or rule is skipped and logged); the exceptions below cover the
remaining cases where a caller-supplied contract is unusable and the
caller has to be told which type and which derivation step failed.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for monitoring and alerting
- **ContractError**: Base exception with rich context and fingerprinting
- **Specialized exceptions**: Schema derivation, naming, emission, validation
"""

import hashlib
import traceback
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.contract.validation.loader import Violation


class ErrorCode(Enum):
    """Standardized error codes for the contract engine."""

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """A request payload violated its derived validation rules."""

    # Contract errors
    SCHEMA_DERIVATION_ERROR = "SCHEMA_DERIVATION_ERROR"
    """A declared payload type cannot be turned into a schema document."""

    SCHEMA_NAME_COLLISION = "SCHEMA_NAME_COLLISION"
    """Two different payload types map to the same component schema name."""

    RESPONSE_EMISSION_ERROR = "RESPONSE_EMISSION_ERROR"
    """A result cannot be rendered with the selected response mapping."""


class Severity(Enum):
    """Severity levels for contract errors."""

    LOW = "LOW"
    """Low severity errors that don't significantly impact functionality."""

    MEDIUM = "MEDIUM"
    """Medium severity errors that may affect some features but not critical ops."""

    HIGH = "HIGH"
    """High severity errors impacting critical functionality or data integrity."""

    CRITICAL = "CRITICAL"
    """Critical errors requiring immediate attention, may cause system failures."""


class ContractError(Exception):
    """Base exception class for all contract engine exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        # Capture stack trace at creation time
        self.stack_trace = traceback.format_stack()[:-1]  # Exclude this frame

        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for error grouping.

        Returns:
            str: A hash string for error grouping
        """
        max_frames = 5
        relevant_frames = self.stack_trace[-max_frames:]

        fingerprint_data = f"{self.__class__.__name__}:{self.error_code}"
        for frame in relevant_frames:
            if "site-packages" not in frame and "src/" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        """Whether this error is part of normal operation (LOW or MEDIUM)."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    def __str__(self) -> str:
        """Return a string representation of the exception.

        Returns:
            str: A formatted string containing the error code and message
        """
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return a detailed representation of the exception.

        Returns:
            str: A string showing the class name, error code, message, severity,
                and context
        """
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class SchemaDerivationError(ContractError):
    """Raised when a payload type is not a schema-derivable shape.

    Args:
        message: Description of the failure
        type_name: Qualified name of the offending type
        step: Derivation step that failed (e.g. "properties", "wire_name")
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        type_name: str,
        step: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.SCHEMA_DERIVATION_ERROR,
            message,
            Severity.HIGH,
            {"type": type_name, "step": step},
            cause,
        )
        self.type_name = type_name
        self.step = step


class SchemaNameCollisionError(ContractError):
    """Raised when two distinct types would export under the same schema name.

    Args:
        schema_name: The contested component name
        existing: Qualified name of the type already registered under it
        incoming: Qualified name of the type that collided
    """

    def __init__(self, schema_name: str, existing: str, incoming: str) -> None:
        super().__init__(
            ErrorCode.SCHEMA_NAME_COLLISION,
            f"Schema name '{schema_name}' is used by both {existing} and {incoming}",
            Severity.HIGH,
            {"schema_name": schema_name, "existing": existing, "incoming": incoming},
        )
        self.schema_name = schema_name


class ResponseEmissionError(ContractError):
    """Raised when a result cannot be rendered for the selected response mapping.

    Args:
        message: Description of the failure
        context: Additional context information about the error
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(
            ErrorCode.RESPONSE_EMISSION_ERROR, message, Severity.MEDIUM, context
        )


class RequestValidationFailed(ContractError):
    """Raised when a payload violates the rules derived from its metadata.

    Args:
        violations: Violations reported by the constraint loader
        message: Description of the failure
    """

    def __init__(
        self,
        violations: "list[Violation]",
        message: str = "Invalid request body.",
    ) -> None:
        super().__init__(
            ErrorCode.VALIDATION_ERROR,
            message,
            Severity.LOW,
            {"violation_count": len(violations)},
        )
        self.violations = violations
