"""inferlib: local and cloud text generation behind one provider interface."""

from .core import BaseError, ConfigurationError, ErrorContext, ProviderError, ResourceError, configure_logging
from .providers import ProviderType, provider_registry
from .providers.llm import (
    AbortedError,
    CancellationToken,
    CloudInferenceClient,
    GenerationError,
    GenerationParams,
    GenerationStream,
    LocalInferenceEngine,
    LocalModelProvider,
    ModelConfig,
    ModelLoader,
    ModelProvider,
    ProviderIdentity,
)

__version__ = "0.1.0"

__all__ = [
    "BaseError",
    "ConfigurationError",
    "ErrorContext",
    "ProviderError",
    "ResourceError",
    "configure_logging",
    "ProviderType",
    "provider_registry",
    "AbortedError",
    "CancellationToken",
    "CloudInferenceClient",
    "GenerationError",
    "GenerationParams",
    "GenerationStream",
    "LocalInferenceEngine",
    "LocalModelProvider",
    "ModelConfig",
    "ModelLoader",
    "ModelProvider",
    "ProviderIdentity",
    "__version__",
]
