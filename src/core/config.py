"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation, environment variable
support, and cloud provider auto-detection.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for complex config structures
- **Auto-detection**: Automatically detects cloud environments (GCP, AWS)
- **Caching**: Configuration is cached for performance

The ``api_response`` section carries every option of the response envelope
layer: key scheme, API version, exception visibility, compression, rate
limiting and paginated response caching. It is read once when the response
service is built and injected from there; nothing in the envelope pipeline
looks it up globally.

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
"""

import os
from functools import lru_cache
from typing import Final, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.constants import SECONDS_PER_MINUTE

DEFAULT_RESPONSE_STRUCTURE: Final[dict[str, str | bool]] = {
    "success_key": "success",
    "message_key": "message",
    "data_key": "data",
    "errors_key": "errors",
    "error_code_key": "error_code",
    "meta_key": "meta",
    "links_key": "_links",
    "include_api_version": True,
}


class LogConfig(BaseModel):
    """Simplified logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "api_key",
            "authorization",
        ],
        description="Field names to redact",
    )


class ObservabilityConfig(BaseModel):
    """Cloud-agnostic observability configuration."""

    enable_tracing: bool = Field(
        default=True,
        description="Enable OpenTelemetry tracing",
    )
    exporter_type: Literal["console", "otlp", "none"] = Field(
        default="console",
        description="Trace exporter type. Defaults to console for development.",
    )
    exporter_endpoint: str | None = Field(
        default=None,
        description="OTLP exporter endpoint",
    )
    trace_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Trace sampling rate (0.0 to 1.0)",
    )

    @field_validator("exporter_endpoint", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


class RedisConfig(BaseModel):
    """Shared store for rate-limit counters and cached responses."""

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (redis://[[user]:password@]host:port/db)",
    )
    key_prefix: str = Field(
        default="envelope:",
        description="Prefix applied to every key written by the application",
    )
    socket_timeout: float = Field(
        default=1.0,
        gt=0,
        le=30,
        description="Timeout in seconds for Redis socket operations",
    )


class ApiResponseConfig(BaseModel):
    """Response envelope configuration."""

    api_version: str = Field(
        default="1.0",
        description="API version reported in envelopes and metadata",
    )
    show_exception_environments: list[str] = Field(
        default_factory=lambda: ["local", "testing", "development"],
        description="Environments in which exception details reach the client",
    )
    response_structure: dict[str, str | bool] = Field(
        default_factory=lambda: dict(DEFAULT_RESPONSE_STRUCTURE),
        description="Envelope key scheme (all eight keys are required)",
    )
    enable_compression: bool = Field(
        default=True,
        description="Gzip response bodies above the compression threshold",
    )
    compression_threshold: int = Field(
        default=1024,
        ge=0,
        description="Minimum body size in bytes before compression is attempted",
    )
    rate_limit_max_attempts: int = Field(
        default=60,
        gt=0,
        description="Paginated requests allowed per client within the decay window",
    )
    rate_limit_decay_minutes: int = Field(
        default=1,
        gt=0,
        description="Length of the rate limit window in minutes",
    )
    cache_paginated_responses: bool = Field(
        default=False,
        description="Cache built paginated responses",
    )
    paginated_cache_prefix: str = Field(
        default="api_paginated_",
        description="Cache key prefix for paginated responses",
    )
    paginated_cache_duration: int = Field(
        default=3600,
        gt=0,
        description="Paginated response cache TTL in seconds",
    )
    translations: dict[str, str] = Field(
        default_factory=dict,
        description="Message catalog used to localize envelope messages",
    )

    @property
    def rate_limit_decay_seconds(self) -> int:
        """Rate limit window in seconds."""
        return self.rate_limit_decay_minutes * SECONDS_PER_MINUTE


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
    app_name: str = Field(default="Envelope", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["local", "testing", "development", "staging", "production"] = (
        Field(
            default="development",
            description="Environment the application is running in",
        )
    )
    debug: bool = Field(default=True, description="Debug mode flag")

    # API settings
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=8000, description="API port")
    docs_url: str | None = Field(default="/docs", description="Swagger UI URL")
    redoc_url: str | None = Field(default="/redoc", description="ReDoc URL")
    openapi_url: str | None = Field(
        default="/openapi.json", description="OpenAPI schema URL"
    )

    # Logging configuration
    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )

    # Observability configuration
    observability_config: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig, description="Observability configuration"
    )

    # Response envelope configuration
    api_response: ApiResponseConfig = Field(
        default_factory=ApiResponseConfig, description="Response envelope configuration"
    )

    # Shared store configuration
    redis_config: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

        if self.environment == "production":
            if self.observability_config.exporter_type == "console":
                self.observability_config.exporter_type = "otlp"
            if self.observability_config.trace_sample_rate == 1.0:
                self.observability_config.trace_sample_rate = 0.1

    def _detect_formatter(self) -> Literal["console", "json"]:
        """Auto-detect log formatter based on environment."""
        # Cloud runtimes ingest structured logs
        if os.getenv("K_SERVICE") or os.getenv("AWS_EXECUTION_ENV"):
            return "json"

        if self.environment in ("local", "testing", "development"):
            return "console"
        return "json"

    @property
    def show_exception_details(self) -> bool:
        """Whether the current environment may expose exception details."""
        return self.environment in self.api_response.show_exception_environments

    @field_validator("docs_url", "redoc_url", "openapi_url", mode="before")
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
