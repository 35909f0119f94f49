"""Cloud chat-completion client built on aiohttp.

``CloudInferenceClient`` sends a finished prompt to a remote HTTPS
chat-completion endpoint and returns the reply. The API key is read from a
``SecretStore`` right before each request and only ever lives in a local
variable and the outgoing request headers.

Each call runs its HTTP exchange in a dedicated asyncio task. ``abort()``
may be called from any thread; it cancels the task through the owning
event loop and the call fails with ``RequestAbortedError``.
"""

import asyncio
import json
import logging
import threading
from typing import Any, Callable, Dict, Optional

import aiohttp
from pydantic import ConfigDict, Field, ValidationError
from yarl import URL

from ...decorators import model_provider
from ..base import ModelProvider, ModelProviderSettings, TokenCallback
from ..cancellation import CancellationToken
from ..errors import (
    HttpError,
    InsecureEndpointError,
    InvalidEndpointURLError,
    InvalidResponseError,
    NoContentInResponseError,
    NoCredentialError,
    RequestAbortedError,
    RequestTimeoutError,
    TransportError,
)
from ..models import GenerationParams
from .identity import OPENAI, ApiFormat, ProviderIdentity
from .schemas import (
    AnthropicMessagesRequest,
    AnthropicMessagesResponse,
    ChatMessage,
    OpenAIChatRequest,
    OpenAIChatResponse,
)
from .secrets import KeyringSecretStore, SecretStore

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

SessionFactory = Callable[..., Any]


class CloudProviderSettings(ModelProviderSettings):
    """Settings for the cloud client.

    Attributes:
        timeout_seconds: Total request timeout
        model_name: Overrides the identity's default model when set
        user_agent: Value of the User-Agent header
        anthropic_version: Value of the anthropic-version header
    """

    model_config = ConfigDict(protected_namespaces=())

    timeout_seconds: float = 30.0
    model_name: Optional[str] = None
    user_agent: str = "inferlib/0.1"
    anthropic_version: str = Field(default="2023-06-01")


@model_provider("cloud", description="HTTPS chat-completion API client")
class CloudInferenceClient(ModelProvider[CloudProviderSettings]):
    """Model provider for remote chat-completion APIs.

    This class provides:
    1. Credential lookup at call time with HTTPS-only endpoints
    2. OpenAI-compatible and Anthropic request/response handling
    3. Typed errors for every failure and cross-thread abort
    """

    def __init__(
        self,
        identity: ProviderIdentity = OPENAI,
        secret_store: Optional[SecretStore] = None,
        name: str = "cloud",
        settings: Optional[CloudProviderSettings] = None,
        session_factory: Optional[SessionFactory] = None
    ):
        """Initialize cloud client.

        Args:
            identity: Service to talk to
            secret_store: Where the API key is looked up, defaults to the system keyring
            name: Provider instance name
            settings: Optional client settings
            session_factory: Callable returning an aiohttp-compatible session
        """
        super().__init__(name=name, settings=settings)
        self.identity = identity
        self.secret_store = secret_store if secret_store is not None else KeyringSecretStore()
        self._session_factory = session_factory or aiohttp.ClientSession
        self._lock = threading.Lock()
        self._in_flight: Optional[CancellationToken] = None
        self._available = self._has_credential()

    @property
    def provider_name(self) -> str:
        return self.identity.display_name

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def model_name(self) -> str:
        return self.settings.model_name or self.identity.default_model_name

    def refresh_availability(self) -> bool:
        """Re-check the secret store and update ``is_available``."""
        self._available = self._has_credential()
        return self._available

    def _has_credential(self) -> bool:
        return bool(self.secret_store.load(self.identity.secret_key_name))

    async def _initialize(self) -> None:
        self.refresh_availability()
        if not self._available:
            logger.warning(f"{self.provider_name}: no API key configured")

    async def _shutdown(self) -> None:
        self.abort()

    async def _generate(
        self,
        prompt: str,
        params: GenerationParams,
        on_token: TokenCallback,
        cancel_token: CancellationToken
    ) -> str:
        if cancel_token.cancelled:
            raise RequestAbortedError(provider_name=self.provider_name)

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._request(prompt, params))

        def cancel_task() -> None:
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                # Loop already closed, nothing left to cancel
                logger.debug(f"{self.provider_name}: event loop closed before cancellation")

        with self._lock:
            self._in_flight = cancel_token
        cancel_token.add_callback(cancel_task)

        try:
            content = await task
        except asyncio.CancelledError:
            if cancel_token.cancelled:
                logger.info(f"{self.provider_name}: request cancelled")
                raise RequestAbortedError(provider_name=self.provider_name)
            task.cancel()
            raise
        finally:
            cancel_token.remove_callback(cancel_task)
            with self._lock:
                if self._in_flight is cancel_token:
                    self._in_flight = None

        if cancel_token.cancelled:
            raise RequestAbortedError(provider_name=self.provider_name)

        on_token(content)
        return content

    def abort(self) -> None:
        """Cancel the tracked request, if any, and forget it. Safe from any thread."""
        with self._lock:
            token = self._in_flight
            self._in_flight = None
        if token is not None:
            token.cancel()

    async def _request(self, prompt: str, params: GenerationParams) -> str:
        identity = self.identity

        api_key = self.secret_store.load(identity.secret_key_name)
        if not api_key:
            raise NoCredentialError(identity.secret_key_name, provider_name=self.provider_name)

        url = self._validate_endpoint(identity.endpoint_url)
        body = self.build_body(prompt, params)
        headers = self._build_headers(api_key)
        timeout = aiohttp.ClientTimeout(total=self.settings.timeout_seconds)

        if self.settings.log_requests:
            logger.debug(f"{self.provider_name}: POST {url} model={self.model_name} prompt_chars={len(prompt)}")

        try:
            async with self._session_factory(timeout=timeout) as session:
                async with session.post(url, json=body, headers=headers) as response:
                    status = response.status
                    raw = await response.read()
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                self.settings.timeout_seconds, provider_name=self.provider_name, cause=e
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(
                f"Request to {url.host} failed: {type(e).__name__}",
                provider_name=self.provider_name,
                cause=e
            ) from e

        text = raw.decode("utf-8", errors="replace")
        if self.settings.log_responses:
            logger.debug(f"{self.provider_name}: HTTP {status}, {len(raw)} bytes")

        if status != 200:
            logger.warning(f"{self.provider_name}: request failed with HTTP {status}")
            raise HttpError(status, self._redact(text, api_key), provider_name=self.provider_name)

        return self.parse_content(text)

    def _validate_endpoint(self, endpoint: str) -> URL:
        if not endpoint.startswith("https://"):
            raise InsecureEndpointError(endpoint, provider_name=self.provider_name)
        try:
            url = URL(endpoint)
        except (TypeError, ValueError) as e:
            raise InvalidEndpointURLError(endpoint, provider_name=self.provider_name, cause=e) from e
        if not url.host:
            raise InvalidEndpointURLError(endpoint, provider_name=self.provider_name)
        return url

    def build_body(self, prompt: str, params: GenerationParams) -> Dict[str, Any]:
        """Request body for the identity's API format."""
        messages = [ChatMessage(role="user", content=prompt)]
        if self.identity.api_format == ApiFormat.ANTHROPIC:
            request = AnthropicMessagesRequest(
                model=self.model_name,
                max_tokens=params.max_tokens,
                messages=messages,
                temperature=params.temperature,
            )
            return request.model_dump(exclude_none=True)

        return OpenAIChatRequest(
            model=self.model_name,
            messages=messages,
            max_tokens=params.max_tokens,
            temperature=params.temperature,
            top_p=params.top_p,
        ).model_dump()

    def _build_headers(self, api_key: str) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.settings.user_agent,
        }
        if self.identity.api_format == ApiFormat.ANTHROPIC:
            headers["x-api-key"] = api_key
            headers["anthropic-version"] = self.settings.anthropic_version
        else:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def parse_content(self, text: str) -> str:
        """Extract the reply text from a successful response body.

        Raises:
            InvalidResponseError: If the body is not a JSON object
            NoContentInResponseError: If the reply text is missing, mistyped or empty
        """
        try:
            data = json.loads(text)
        except ValueError as e:
            raise InvalidResponseError(
                "Response body is not valid JSON", provider_name=self.provider_name, cause=e
            ) from e

        if not isinstance(data, dict):
            raise InvalidResponseError("Response body is not a JSON object", provider_name=self.provider_name)

        schema = (
            AnthropicMessagesResponse
            if self.identity.api_format == ApiFormat.ANTHROPIC
            else OpenAIChatResponse
        )
        try:
            parsed = schema.model_validate(data)
        except ValidationError as e:
            raise NoContentInResponseError(provider_name=self.provider_name, cause=e) from e

        content = parsed.text()
        if not content:
            raise NoContentInResponseError(provider_name=self.provider_name)
        return content

    @staticmethod
    def _redact(body: str, api_key: str) -> str:
        return body.replace(api_key, REDACTED) if api_key else body
