"""Structured errors shared by every inferlib provider."""

from .base import (
    BaseError,
    ConfigurationError,
    ResourceError,
    ProviderError,
    ErrorContext,
)

__all__ = [
    "BaseError",
    "ConfigurationError",
    "ResourceError",
    "ProviderError",
    "ErrorContext",
]
