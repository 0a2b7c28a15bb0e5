"""Shared configuration base classes.

Provides common configuration patterns used across all services to reduce
duplication and ensure consistency.
"""

from pydantic_settings import BaseSettings


class BaseLoggingConfig(BaseSettings):
    """Common logging configuration for all services."""

    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "bearer",
        "authorization",
        "cookie",
    ]
    app_environment: str = "production"


class BaseApiConfig(BaseSettings):
    """Common upstream REST API configuration for all services."""

    api_base_url: str = "http://localhost:8080/api"
    api_timeout_seconds: float = 10.0
    # first try plus three retries, backoff doubling from 1s up to 30s
    api_max_attempts: int = 4
    api_retry_base_delay_seconds: float = 1.0
    api_retry_max_delay_seconds: float = 30.0


class BaseServiceConfig(BaseLoggingConfig, BaseApiConfig):
    """Base configuration combining logging and upstream API settings.

    Services should inherit from this and add their own specific settings.
    The otel_service_name should be overridden by each service.
    """

    otel_service_name: str = "unknown"  # Should be overridden by service


__all__ = ["BaseLoggingConfig", "BaseApiConfig", "BaseServiceConfig"]
