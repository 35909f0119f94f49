"""Core building blocks shared by all inferlib providers."""

from .errors import BaseError, ConfigurationError, ResourceError, ProviderError, ErrorContext
from .logging import configure_logging

__all__ = [
    "BaseError",
    "ConfigurationError",
    "ResourceError",
    "ProviderError",
    "ErrorContext",
    "configure_logging",
]
