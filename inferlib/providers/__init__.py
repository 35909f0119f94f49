"""Provider framework: settings, lifecycle, registry and implementations."""

from .base import Provider, ProviderSettings
from .constants import ProviderType
from .decorators import model_provider, provider
from .registry import ProviderRegistry, provider_registry
from . import llm

__all__ = [
    "Provider",
    "ProviderSettings",
    "ProviderType",
    "ProviderRegistry",
    "provider_registry",
    "provider",
    "model_provider",
    "llm",
]
