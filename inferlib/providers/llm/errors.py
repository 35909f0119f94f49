"""Generation error taxonomy shared by all model providers.

Every failure of a generation call is raised as one of the typed errors
below. Local and cloud kinds share the ``GenerationError`` root so callers
can catch either family or everything at once, and both abort kinds share
``AbortedError`` so a cancelled call is always distinguishable from a
failed one.
"""

from typing import Optional

from ...core.errors import ErrorContext, ProviderError, ResourceError

BODY_PREVIEW_CHARS = 200


class GenerationError(ProviderError):
    """Base class for every error a generate call can raise."""


class AbortedError(GenerationError):
    """Raised when a generate call was cancelled through abort()."""


# Local engine


class LocalGenerationError(GenerationError):
    """Base class for local inference failures."""


class ModelNotLoadedError(LocalGenerationError):
    """Raised when generating without a loaded model handle."""

    def __init__(self, provider_name: Optional[str] = None):
        super().__init__("No model is loaded", provider_name=provider_name)


class TokenizationFailedError(LocalGenerationError):
    """Raised when the runtime tokenizer rejects the prompt."""

    def __init__(self, prompt: str, provider_name: Optional[str] = None, cause: Optional[Exception] = None):
        self.prompt_preview = prompt[:100]
        super().__init__(
            f"Failed to tokenize prompt ({len(prompt)} chars)",
            provider_name=provider_name,
            context=ErrorContext.create(prompt_preview=self.prompt_preview),
            cause=cause
        )


class ContextOverflowError(LocalGenerationError):
    """Raised when the prompt alone fills the context window."""

    def __init__(self, requested: int, available: int, provider_name: Optional[str] = None):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Prompt needs {requested} tokens but the context window holds {available}",
            provider_name=provider_name,
            context=ErrorContext.create(requested=requested, available=available)
        )


class DecodeFailedError(LocalGenerationError):
    """Raised when the runtime returns a non-zero decode status."""

    def __init__(self, code: int, provider_name: Optional[str] = None):
        self.code = code
        super().__init__(
            f"Decode failed with status {code}",
            provider_name=provider_name,
            context=ErrorContext.create(code=code)
        )


class GenerationAbortedError(AbortedError, LocalGenerationError):
    """Raised when a local generation is aborted between tokens."""

    def __init__(self, provider_name: Optional[str] = None):
        super().__init__("Generation was aborted", provider_name=provider_name)


# Cloud client


class CloudGenerationError(GenerationError):
    """Base class for cloud request failures."""


class NoCredentialError(CloudGenerationError):
    """Raised when no API key is stored for the provider identity."""

    def __init__(self, secret_key_name: str, provider_name: Optional[str] = None):
        self.secret_key_name = secret_key_name
        super().__init__(
            "No API key configured",
            provider_name=provider_name,
            context=ErrorContext.create(secret_key_name=secret_key_name)
        )


class InsecureEndpointError(CloudGenerationError):
    """Raised before any network activity when the endpoint is not HTTPS."""

    def __init__(self, endpoint: str, provider_name: Optional[str] = None):
        self.endpoint = endpoint
        super().__init__(
            f"Endpoint must use HTTPS. Insecure URL rejected: {endpoint}",
            provider_name=provider_name,
            context=ErrorContext.create(endpoint=endpoint)
        )


class InvalidEndpointURLError(CloudGenerationError):
    """Raised when the endpoint cannot be parsed into a URL."""

    def __init__(self, endpoint: str, provider_name: Optional[str] = None, cause: Optional[Exception] = None):
        self.endpoint = endpoint
        super().__init__(
            f"Invalid API endpoint URL: {endpoint}",
            provider_name=provider_name,
            context=ErrorContext.create(endpoint=endpoint),
            cause=cause
        )


class HttpError(CloudGenerationError):
    """Raised for any non-200 response; carries status code and raw body."""

    def __init__(self, status_code: int, body: str, provider_name: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"HTTP {status_code}",
            provider_name=provider_name,
            context=ErrorContext.create(
                status_code=status_code,
                body_preview=body[:BODY_PREVIEW_CHARS]
            )
        )

    @property
    def user_message(self) -> str:
        """Status-appropriate message suitable for showing to a user."""
        code = self.status_code
        if code == 401:
            return "Invalid API key (401). Please check the key configured for this provider."
        if code == 429:
            return "Rate limit reached (429). Please wait a moment and try again."
        if 500 <= code <= 599:
            return f"Cloud service error ({code}). Please try again."
        return f"API error ({code}): {self.body[:BODY_PREVIEW_CHARS]}"


class InvalidResponseError(CloudGenerationError):
    """Raised when the response body is not a JSON object."""

    def __init__(self, reason: str = "Unexpected response from the cloud model",
                 provider_name: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__(reason, provider_name=provider_name, cause=cause)


class NoContentInResponseError(CloudGenerationError):
    """Raised when a JSON object response has no text at the expected path."""

    def __init__(self, provider_name: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__("Cloud model returned an empty response", provider_name=provider_name, cause=cause)


class RequestAbortedError(AbortedError, CloudGenerationError):
    """Raised when an in-flight cloud request is cancelled through abort()."""

    def __init__(self, provider_name: Optional[str] = None):
        super().__init__("Request was cancelled", provider_name=provider_name)


class RequestTimeoutError(CloudGenerationError):
    """Raised when the fixed request timeout elapses."""

    def __init__(self, timeout_seconds: float, provider_name: Optional[str] = None,
                 cause: Optional[Exception] = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Request timed out after {timeout_seconds}s",
            provider_name=provider_name,
            context=ErrorContext.create(timeout_seconds=timeout_seconds),
            cause=cause
        )


class TransportError(CloudGenerationError):
    """Raised when the HTTP transport fails before a response arrives."""


# Model loading


class ModelLoadError(ResourceError):
    """Base class for failures while loading a model file."""

    def __init__(self, message: str, path: str, cause: Optional[Exception] = None):
        self.path = path
        super().__init__(message, resource_id=path, resource_type="model", cause=cause)


class ModelFileNotFoundError(ModelLoadError):
    """Raised when the model path does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Model file not found: {path}", path)


class UnreadableModelFileError(ModelLoadError):
    """Raised when the model file exists but cannot be read."""

    def __init__(self, path: str, reason: str, cause: Optional[Exception] = None):
        self.reason = reason
        super().__init__(f"Model file is unreadable: {path} ({reason})", path, cause=cause)


class InvalidModelFileError(ModelLoadError):
    """Raised when the file does not start with the GGUF magic bytes."""

    def __init__(self, path: str):
        super().__init__(f"Not a GGUF model file: {path}", path)


class ModelLoadFailedError(ModelLoadError):
    """Raised when the runtime refuses to load the model weights."""

    def __init__(self, path: str):
        super().__init__(f"Runtime failed to load model: {path}", path)


class ContextInitializationFailedError(ModelLoadError):
    """Raised when the decoding context cannot be created."""

    def __init__(self, path: str):
        super().__init__(f"Failed to create decoding context for model: {path}", path)
