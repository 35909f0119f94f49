"""Identities of the supported cloud chat-completion services."""

from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict

from ....core.errors import ConfigurationError, ErrorContext

SECRET_KEY_PREFIX = "cloud-apikey-"


class ApiFormat(str, Enum):
    """Wire format of a chat-completion endpoint."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class ProviderIdentity(BaseModel):
    """Static description of a cloud service.

    Attributes:
        display_name: Human readable name, also reported as provider_name
        endpoint_url: Full URL of the chat-completion endpoint
        default_model_name: Model requested unless settings override it
        secret_key_name: Key under which the API key is kept in the secret store
        api_format: Request/response format spoken by the endpoint
    """

    model_config = ConfigDict(frozen=True)

    display_name: str
    endpoint_url: str
    default_model_name: str
    secret_key_name: str
    api_format: ApiFormat = ApiFormat.OPENAI

    @classmethod
    def custom(cls, endpoint_url: str, model_name: str, display_name: str = "Custom") -> "ProviderIdentity":
        """Identity for a user supplied OpenAI-compatible endpoint."""
        return cls(
            display_name=display_name,
            endpoint_url=endpoint_url,
            default_model_name=model_name,
            secret_key_name=f"{SECRET_KEY_PREFIX}{display_name}",
        )


OPENAI = ProviderIdentity(
    display_name="OpenAI",
    endpoint_url="https://api.openai.com/v1/chat/completions",
    default_model_name="gpt-4o-mini",
    secret_key_name=f"{SECRET_KEY_PREFIX}OpenAI",
)

GROQ = ProviderIdentity(
    display_name="Groq",
    endpoint_url="https://api.groq.com/openai/v1/chat/completions",
    default_model_name="llama-3.1-70b-versatile",
    secret_key_name=f"{SECRET_KEY_PREFIX}Groq",
)

TOGETHER_AI = ProviderIdentity(
    display_name="Together AI",
    endpoint_url="https://api.together.xyz/v1/chat/completions",
    default_model_name="meta-llama/Meta-Llama-3.1-70B-Instruct-Turbo",
    secret_key_name=f"{SECRET_KEY_PREFIX}Together AI",
)

ANTHROPIC = ProviderIdentity(
    display_name="Anthropic",
    endpoint_url="https://api.anthropic.com/v1/messages",
    default_model_name="claude-sonnet-4-5-20250929",
    secret_key_name=f"{SECRET_KEY_PREFIX}Anthropic",
    api_format=ApiFormat.ANTHROPIC,
)

BUILTIN_IDENTITIES: Dict[str, ProviderIdentity] = {
    identity.display_name.lower(): identity
    for identity in (OPENAI, GROQ, TOGETHER_AI, ANTHROPIC)
}


def get_identity(name: str) -> ProviderIdentity:
    """Look up a built-in identity by display name (case-insensitive).

    Raises:
        ConfigurationError: If the name is unknown
    """
    identity = BUILTIN_IDENTITIES.get(name.strip().lower())
    if identity is None:
        raise ConfigurationError(
            message=f"Unknown cloud provider: {name}",
            config_key="identity",
            context=ErrorContext.create(known=sorted(i.display_name for i in BUILTIN_IDENTITIES.values()))
        )
    return identity
