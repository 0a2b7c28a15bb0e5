"""Shared utilities and components for all services."""

from .config import BaseApiConfig, BaseLoggingConfig, BaseServiceConfig
from .constants import ApiPaths, Environment

__all__ = [
    "Environment",
    "ApiPaths",
    "BaseServiceConfig",
    "BaseLoggingConfig",
    "BaseApiConfig",
]
