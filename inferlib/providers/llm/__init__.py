"""Text-generation providers.

Importing this package registers the ``local`` and ``cloud`` factories
with the provider registry.
"""

from .base import ModelProvider, ModelProviderSettings
from .cancellation import CancellationToken
from .errors import (
    AbortedError,
    CloudGenerationError,
    ContextInitializationFailedError,
    ContextOverflowError,
    DecodeFailedError,
    GenerationAbortedError,
    GenerationError,
    HttpError,
    InsecureEndpointError,
    InvalidEndpointURLError,
    InvalidModelFileError,
    InvalidResponseError,
    LocalGenerationError,
    ModelFileNotFoundError,
    ModelLoadError,
    ModelLoadFailedError,
    ModelNotLoadedError,
    NoContentInResponseError,
    NoCredentialError,
    RequestAbortedError,
    RequestTimeoutError,
    TokenizationFailedError,
    TransportError,
    UnreadableModelFileError,
)
from .models import GenerationParams, ModelConfig
from .streaming import GenerationStream
from .local import LocalInferenceEngine, LocalModelProvider, LocalProviderSettings, ModelLoader
from .cloud import CloudInferenceClient, CloudProviderSettings, ProviderIdentity

__all__ = [
    "ModelProvider",
    "ModelProviderSettings",
    "CancellationToken",
    "GenerationParams",
    "ModelConfig",
    "GenerationStream",
    "LocalInferenceEngine",
    "LocalModelProvider",
    "LocalProviderSettings",
    "ModelLoader",
    "CloudInferenceClient",
    "CloudProviderSettings",
    "ProviderIdentity",
    "AbortedError",
    "CloudGenerationError",
    "ContextInitializationFailedError",
    "ContextOverflowError",
    "DecodeFailedError",
    "GenerationAbortedError",
    "GenerationError",
    "HttpError",
    "InsecureEndpointError",
    "InvalidEndpointURLError",
    "InvalidModelFileError",
    "InvalidResponseError",
    "LocalGenerationError",
    "ModelFileNotFoundError",
    "ModelLoadError",
    "ModelLoadFailedError",
    "ModelNotLoadedError",
    "NoContentInResponseError",
    "NoCredentialError",
    "RequestAbortedError",
    "RequestTimeoutError",
    "TokenizationFailedError",
    "TransportError",
    "UnreadableModelFileError",
]
