"""Remote chat-completion providers."""

from .client import CloudInferenceClient, CloudProviderSettings
from .identity import (
    ANTHROPIC,
    BUILTIN_IDENTITIES,
    GROQ,
    OPENAI,
    TOGETHER_AI,
    ApiFormat,
    ProviderIdentity,
    get_identity,
)
from .secrets import InMemorySecretStore, KeyringSecretStore, SecretStore

__all__ = [
    "CloudInferenceClient",
    "CloudProviderSettings",
    "ProviderIdentity",
    "ApiFormat",
    "get_identity",
    "BUILTIN_IDENTITIES",
    "OPENAI",
    "GROQ",
    "TOGETHER_AI",
    "ANTHROPIC",
    "SecretStore",
    "KeyringSecretStore",
    "InMemorySecretStore",
]
