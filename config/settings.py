"""
Configuration management for the Sensor Data Ingestion API.

This module provides centralized configuration loading and validation using
Pydantic settings. The shared API key and broker connection details are
loaded from environment variables or .env files.

Environment-specific files (.env.development, .env.staging, .env.production)
override the base .env file; the ENVIRONMENT variable selects which one.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PUBLIC_PATHS = [
    "/docs",
    "/redoc",
    "/openapi.json",
    "/health",
    "/api/sensordata/status",
]

# Minimum API key length enforced outside development
PRODUCTION_MIN_API_KEY_LENGTH = 16


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific file
    overrides it.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    return (".env", env_file_map.get(environment, ".env.development"))


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    API_KEY is the only value without a default. The application refuses
    to start if it is missing or blank.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # API key authentication
    api_key: str = Field(
        ...,
        description="Shared secret every gateway presents on authenticated calls"
    )
    api_key_header_name: str = Field(
        default="X-API-KEY",
        description="Name of the request header carrying the API key"
    )
    public_paths: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PUBLIC_PATHS),
        description="Paths reachable without an API key (the root path is always public)"
    )

    # Message publishing
    publisher_type: str = Field(
        default="redis",
        description="Publisher backend: 'redis' or 'memory'"
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL used by the stream publisher"
    )
    queue_name: str = Field(
        default="sensor-data-queue",
        description="Destination stream that validated readings are published to"
    )
    queue_max_length: int = Field(
        default=100_000,
        ge=1,
        description="Approximate maximum number of entries retained in the stream"
    )
    publish_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Upper bound for a single publish, retries included; cuts the retry schedule short when lower"
    )
    publish_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Transport-level publish attempts before giving up"
    )
    publish_retry_interval_seconds: float = Field(
        default=5.0,
        ge=0,
        le=60,
        description="Fixed delay between transport-level publish attempts"
    )

    # Request limits
    max_batch_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Maximum number of readings accepted in one batch request"
    )

    # Observability Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    otel_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry collector endpoint URL"
    )
    otel_service_name: str = Field(
        default="sensor-data-ingestion",
        description="Service name for OpenTelemetry traces and metrics"
    )

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Reject a blank key or one with surrounding whitespace; the key is compared as given."""
        if not v or not v.strip():
            raise ValueError("api_key cannot be empty")
        if v != v.strip():
            raise ValueError("api_key must not start or end with whitespace")
        return v

    @field_validator("api_key_header_name")
    @classmethod
    def validate_api_key_header_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("api_key_header_name cannot be empty")
        if any(ch.isspace() or ch == ":" for ch in v):
            raise ValueError("api_key_header_name must be a valid HTTP header name")
        return v

    @field_validator("public_paths")
    @classmethod
    def validate_public_paths(cls, v: List[str]) -> List[str]:
        """Normalise allow-list entries to lowercase absolute paths."""
        normalised = []
        for path in v:
            path = path.strip().lower()
            if not path:
                continue
            if not path.startswith("/"):
                raise ValueError(f"Public path must start with '/': {path}")
            normalised.append(path.rstrip("/") or "/")
        return normalised

    @field_validator("publisher_type")
    @classmethod
    def validate_publisher_type(cls, v: str) -> str:
        """Validate that publisher_type is either 'redis' or 'memory'."""
        v = v.strip().lower()
        if v not in {"redis", "memory"}:
            raise ValueError("publisher_type must be 'redis' or 'memory'")
        return v

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("redis_url must use the redis://, rediss:// or unix:// scheme")
        return v

    @field_validator("queue_name")
    @classmethod
    def validate_queue_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("queue_name cannot be empty")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Validate CORS origins format and reject wildcard patterns."""
        validated_origins = []
        for origin in v:
            origin = origin.strip()
            if origin == "*" or "*" in origin:
                raise ValueError(
                    f"Wildcard patterns are not allowed in CORS origins: {origin}. "
                    "Specify exact gateway or dashboard domains."
                )
            if not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. "
                    "Must start with http:// or https://"
                )
            validated_origins.append(origin)
        return validated_origins

    @model_validator(mode="after")
    def validate_publisher_config(self) -> "Settings":
        """Require a Redis URL for the stream publisher outside development."""
        if self.publisher_type == "redis" and not self.redis_url:
            if self.environment != Environment.DEVELOPMENT:
                raise ValueError(
                    "redis_url is required when publisher_type is 'redis' "
                    "in non-development environments"
                )
        return self

    @property
    def effective_redis_url(self) -> str:
        """Redis URL to connect to, falling back to a local instance in development."""
        return self.redis_url or "redis://localhost:6379/0"


class ConfigurationError(Exception):
    """Settings are missing or unusable; the message lists every offending field."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = list(missing_fields or [])
        self.invalid_fields = dict(invalid_fields or {})
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        lines = [self.message]
        if self.missing_fields:
            lines.append(f"Missing required fields: {', '.join(self.missing_fields)}")
        if self.invalid_fields:
            lines.append("Invalid field values:")
            lines.extend(f"  - {name}: {reason}" for name, reason in self.invalid_fields.items())
        return "\n".join(lines)

    @classmethod
    def from_validation_error(cls, message: str, error: ValidationError) -> "ConfigurationError":
        missing, invalid = [], {}
        for item in error.errors():
            name = ".".join(str(part) for part in item.get("loc", ())) or "settings"
            if item.get("type") == "missing":
                missing.append(name)
            else:
                invalid[name] = item.get("msg", "invalid value")
        return cls(message, missing_fields=missing, invalid_fields=invalid)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Load Settings with the .env files layered for `environment`.

    The environment is detected from ENVIRONMENT when not given. Only env
    files that exist are passed on, falling back to the full list so
    pydantic-settings can ignore them itself.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    environment = environment or _detect_environment()
    env_files = _get_env_files(environment)
    present = tuple(name for name in env_files if Path(name).exists()) or env_files

    class EnvironmentSettings(Settings):
        model_config = SettingsConfigDict(
            env_file=present,
            env_file_encoding="utf-8",
            case_sensitive=False,
            extra="ignore"
        )

    try:
        return EnvironmentSettings()
    except ValidationError as e:
        raise ConfigurationError.from_validation_error(
            f"Failed to load configuration for environment '{environment.value}'", e
        ) from e


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """Load settings once and return the cached instance afterwards."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()
    return _settings_cache


def clear_settings_cache() -> None:
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[Settings] = None) -> None:
    """
    Validate settings at application startup, before accepting requests.

    Raises:
        ConfigurationError: If any settings are unusable in the current environment.
    """
    settings = settings or get_settings()
    validation_errors = {}

    if settings.environment == Environment.PRODUCTION:
        if len(settings.api_key) < PRODUCTION_MIN_API_KEY_LENGTH:
            validation_errors["api_key"] = (
                f"Production API keys must be at least "
                f"{PRODUCTION_MIN_API_KEY_LENGTH} characters long"
            )
        if settings.publisher_type == "memory":
            validation_errors["publisher_type"] = (
                "The in-memory publisher does not deliver messages and "
                "cannot be used in production"
            )
        localhost_only = all(
            "localhost" in origin or "127.0.0.1" in origin
            for origin in settings.cors_origins
        )
        if localhost_only:
            validation_errors["cors_origins"] = (
                "Production environment requires non-localhost CORS origins."
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )
