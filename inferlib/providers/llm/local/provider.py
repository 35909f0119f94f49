"""Model provider over the local inference engine."""

import asyncio
import logging
from typing import Optional, Union

from pydantic import ConfigDict, Field

from ....core.errors import ConfigurationError
from ...decorators import model_provider
from ..base import ModelProvider, ModelProviderSettings, TokenCallback
from ..cancellation import CancellationToken
from ..models import GenerationParams, ModelConfig
from .engine import DEFAULT_BATCH_SIZE, LocalInferenceEngine

logger = logging.getLogger(__name__)


class LocalProviderSettings(ModelProviderSettings):
    """Settings for the local provider.

    Attributes:
        display_name: Reported as provider_name
        model_path: GGUF file loaded by initialize(), if set
        n_ctx: Context window size in tokens
        n_batch: Runtime batch size
        n_threads: CPU threads used for decoding
        n_gpu_layers: Layers offloaded to the GPU (-1 for all)
        use_mmap: Memory-map the model file
        batch_size: Prompt tokens per decode call
    """

    model_config = ConfigDict(protected_namespaces=())

    display_name: str = "Local LLaMA"
    model_path: Optional[str] = None
    n_ctx: int = Field(default=2048, gt=0)
    n_batch: int = Field(default=512, gt=0)
    n_threads: int = Field(default=4, gt=0)
    n_gpu_layers: int = 0
    use_mmap: bool = True
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)

    def to_model_config(self, path: Optional[str] = None) -> ModelConfig:
        """Load configuration for ``path`` (default: ``model_path``)."""
        return ModelConfig(
            path=path or self.model_path or "",
            n_ctx=self.n_ctx,
            n_batch=self.n_batch,
            n_threads=self.n_threads,
            n_gpu_layers=self.n_gpu_layers,
            use_mmap=self.use_mmap,
        )


@model_provider("local", description="In-process llama.cpp inference")
class LocalModelProvider(ModelProvider[LocalProviderSettings]):
    """Model provider backed by a ``LocalInferenceEngine``.

    The engine's worker thread does the work; this class bridges its
    futures into asyncio. Fragments passed to ``on_token`` arrive on the
    worker thread.
    """

    def __init__(
        self,
        name: str = "local",
        settings: Optional[LocalProviderSettings] = None,
        engine: Optional[LocalInferenceEngine] = None
    ):
        super().__init__(name=name, settings=settings)
        self.engine = engine or LocalInferenceEngine(
            batch_size=self.settings.batch_size,
            name=self.settings.display_name
        )

    @property
    def provider_name(self) -> str:
        return self.settings.display_name

    @property
    def is_available(self) -> bool:
        return self.engine.is_model_loaded

    async def _initialize(self) -> None:
        if self.settings.model_path:
            await self.load_model()
        else:
            logger.info(f"{self.provider_name}: no model_path configured, call load_model() before generating")

    async def load_model(self, config: Optional[Union[ModelConfig, str]] = None) -> None:
        """Load (or replace) the engine's model.

        Args:
            config: Model configuration or path, defaults to the settings

        Raises:
            ConfigurationError: If no path is given or configured
            ModelLoadError: If loading fails
        """
        if config is None and not self.settings.model_path:
            raise ConfigurationError("No model path given and settings.model_path is not set", config_key="model_path")
        if config is None or isinstance(config, str):
            config = self.settings.to_model_config(config)
        await asyncio.wrap_future(self.engine.submit_load(config))

    async def unload_model(self) -> None:
        await asyncio.wrap_future(self.engine.submit_unload())

    async def _shutdown(self) -> None:
        # The engine keeps its worker so the provider can be initialized again
        self.engine.abort()
        await self.unload_model()

    async def _generate(
        self,
        prompt: str,
        params: GenerationParams,
        on_token: TokenCallback,
        cancel_token: CancellationToken
    ) -> str:
        future = self.engine.submit(prompt, params, on_token, cancel_token)
        try:
            return await asyncio.wrap_future(future)
        except asyncio.CancelledError:
            # The worker only stops at the next cancellation check
            cancel_token.cancel()
            raise

    def abort(self) -> None:
        self.engine.abort()
