"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support for the contract engine and its HTTP integration.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for complex config structures
- **Caching**: Configuration is cached for performance

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.constants import DEFAULT_DATE_FORMAT, DEFAULT_TIME_FORMAT, SCHEMA_REF_PREFIX


class LogConfig(BaseModel):
    """Simplified logging configuration."""

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = (
        Field(
            default="INFO",
            description="Logging level",
        )
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )


class NormalizerConfig(BaseModel):
    """Default options for the value normalizer."""

    deep: bool = Field(
        default=True,
        description="Expand nested objects instead of describing them",
    )
    max_depth: int = Field(
        default=8,
        ge=1,
        le=256,
        description="Depth at which nested values degrade to text or a placeholder",
    )
    include_null: bool = Field(
        default=True,
        description="Keep map entries whose normalized value is null",
    )
    date_format: str = Field(
        default=DEFAULT_DATE_FORMAT,
        description="strftime format used for dates and datetimes",
    )
    time_format: str = Field(
        default=DEFAULT_TIME_FORMAT,
        description="strftime format used for times of day",
    )
    max_traverse: int = Field(
        default=10_000,
        gt=0,
        description="Maximum number of elements processed per collection",
    )


class DefaultResponseConfig(BaseModel):
    """A globally applied response used when an operation does not declare one."""

    payload_type: str | None = Field(
        default=None,
        description="Import path of the payload class (pkg.module:Name), or null",
    )
    description: str | None = Field(default=None, description="Response description")
    content_type: str | None = Field(
        default=None,
        description="Content type; defaults by the stream flag",
    )
    stream: bool = Field(default=False, description="Streaming response flag")

    @field_validator("payload_type", "content_type", "description", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


class ContractConfig(BaseModel):
    """Schema and response-mapping configuration."""

    default_responses: dict[int, DefaultResponseConfig] = Field(
        default_factory=dict,
        description="Responses applied to every operation unless already declared",
    )
    schema_naming: Literal["short", "qualified"] = Field(
        default="short",
        description="Component schema naming policy",
    )
    schema_ref_prefix: str = Field(
        default=SCHEMA_REF_PREFIX,
        description="Prefix used when rendering $ref pointers",
    )

    @field_validator("default_responses", mode="after")
    @classmethod
    def validate_statuses(
        cls, v: dict[int, DefaultResponseConfig]
    ) -> dict[int, DefaultResponseConfig]:
        """Reject status codes outside the HTTP range."""
        for status in v:
            if not 100 <= status <= 599:  # noqa: PLR2004 - HTTP status range
                msg = f"Invalid HTTP status code in default_responses: {status}"
                raise ValueError(msg)
        return v


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
    )

    # Application settings
    app_name: str = Field(default="DTO Contract", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=True, description="Debug mode flag")

    # API settings
    openapi_url: str | None = Field(
        default="/openapi.json", description="Generated contract document URL"
    )

    # Logging configuration
    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )

    # Normalizer defaults
    normalizer_config: NormalizerConfig = Field(
        default_factory=NormalizerConfig, description="Normalizer defaults"
    )

    # Contract configuration
    contract_config: ContractConfig = Field(
        default_factory=ContractConfig, description="Contract configuration"
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

    def _detect_formatter(self) -> Literal["console", "json"]:
        """Auto-detect log formatter based on environment."""
        if os.getenv("K_SERVICE") or os.getenv("AWS_EXECUTION_ENV"):
            return "json"
        if self.environment == "development":
            return "console"
        return "json"

    @field_validator("openapi_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if v == "":
            return None
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
