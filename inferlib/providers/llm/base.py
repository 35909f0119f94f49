"""Model provider base class and related functionality.

This module provides the capability interface every text-generation backend
implements. Callers depend only on ``ModelProvider``: they hand over a
finished prompt and ``GenerationParams`` and receive the generated text,
optionally streamed, without knowing whether a local runtime or a remote
API produced it.
"""

import logging
import threading
from abc import abstractmethod
from typing import Callable, Optional, TypeVar

from pydantic import Field

from ..base import Provider, ProviderSettings
from ..constants import ProviderType
from .cancellation import CancellationToken
from .models import GenerationParams
from .streaming import GenerationStream

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], None]


class ModelProviderSettings(ProviderSettings):
    """Settings shared by all model providers.

    Attributes:
        default_params: Parameters used when a call passes none
    """

    default_params: GenerationParams = Field(default_factory=GenerationParams)


T = TypeVar('T', bound=ModelProviderSettings)


class _FragmentGate:
    """Forwards fragments to the caller's callback until the call returns.

    The callback runs outside the lock, so ``close()`` never waits for a
    callback that is still running on another thread.
    """

    def __init__(self, callback: Optional[TokenCallback]):
        self._callback = callback
        self._lock = threading.Lock()
        self._open = True

    def __call__(self, fragment: str) -> None:
        with self._lock:
            deliver = self._open and self._callback is not None
        if deliver:
            self._callback(fragment)

    def close(self) -> None:
        with self._lock:
            self._open = False


class ModelProvider(Provider[T]):
    """Base class for text-generation backends.

    This class provides:
    1. The shared generate/abort contract
    2. Default parameter resolution from settings
    3. A streaming view built on top of generate

    Contract for implementations:
    - ``on_token`` receives successive fragments in order and is never
      invoked after ``generate`` returns or raises
    - the returned text equals the concatenation of all fragments
    - ``abort()`` never blocks and never raises, and is a no-op when idle
    - a cancelled call raises an ``AbortedError`` subclass, never succeeds
    """

    def __init__(self, name: str, settings: Optional[T] = None):
        """Initialize model provider.

        Args:
            name: Unique provider name
            settings: Optional provider settings
        """
        super().__init__(name=name, settings=settings, provider_type=ProviderType.LLM.value)

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Stable, human-readable identity of the backend."""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backend can serve a request right now.

        Must never perform network I/O or block.
        """

    async def generate(
        self,
        prompt: str,
        params: Optional[GenerationParams] = None,
        on_token: Optional[TokenCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> str:
        """Generate text for a finished prompt.

        Args:
            prompt: Complete prompt string (already built and sanitized)
            params: Sampling parameters, defaults to ``settings.default_params``
            on_token: Optional callback receiving text fragments as they arrive
            cancel_token: Optional token to cancel this call independently of abort()

        Returns:
            The full generated text

        Raises:
            ValueError: If the prompt is empty
            GenerationError: If generation fails or is aborted
        """
        if not prompt:
            raise ValueError("prompt must not be empty")

        params = params or self.settings.default_params
        cancel_token = cancel_token or CancellationToken()
        gate = _FragmentGate(on_token)

        logger.debug(f"{self.provider_name}: generate (prompt_chars={len(prompt)}, max_tokens={params.max_tokens})")
        try:
            return await self._generate(prompt, params, gate, cancel_token)
        finally:
            gate.close()

    @abstractmethod
    async def _generate(
        self,
        prompt: str,
        params: GenerationParams,
        on_token: TokenCallback,
        cancel_token: CancellationToken
    ) -> str:
        """Concrete generation implemented by subclasses."""

    @abstractmethod
    def abort(self) -> None:
        """Cancel any in-flight generation on this instance."""

    def stream(self, prompt: str, params: Optional[GenerationParams] = None) -> GenerationStream:
        """Return an async iterator over the fragments of a new generate call.

        The call starts on first iteration (or on entering ``async with``).
        """
        async def start(on_token: TokenCallback, cancel_token: CancellationToken) -> str:
            return await self.generate(prompt, params, on_token=on_token, cancel_token=cancel_token)

        return GenerationStream(start)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, provider_name={self.provider_name!r})"
