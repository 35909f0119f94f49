"""Local inference engine driving a llama.cpp model token by token.

The engine owns at most one loaded model and a single worker thread. Every
operation that touches the model (load, unload, generate) is queued on that
worker, so generation calls never overlap and the decoding context is only
ever used from one thread.

Generation algorithm per call:
1. tokenize the prompt (with BOS) and compute the context budget
2. clear the KV cache and decode the prompt in fixed-size batches
3. sample, detokenize, report and decode one token at a time until the
   budget is spent, an end-of-generation token is sampled, or the call is
   cancelled
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Union

from ..cancellation import CancellationToken
from ..errors import (
    ContextOverflowError,
    DecodeFailedError,
    GenerationAbortedError,
    ModelNotLoadedError,
    TokenizationFailedError,
)
from ..models import GenerationParams, ModelConfig
from .detokenize import Detokenizer
from .handle import ModelLoader, ModelRuntime
from .sampling import SamplerChain, build_sampler_chain

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 512

TokenCallback = Callable[[str], None]


@dataclass
class GenerationSession:
    """State of the one generation call running on the worker."""
    tokens: List[int]
    position: int
    budget: int
    sampler: SamplerChain
    detokenizer: Detokenizer
    cancel_token: CancellationToken
    output: List[str] = field(default_factory=list)
    generated: int = 0

    @property
    def text(self) -> str:
        return "".join(self.output)


class LocalInferenceEngine:
    """Serialized generation over a single loaded model.

    This class provides:
    1. Model lifecycle (load, replace, unload) on a dedicated worker thread
    2. The token-by-token generation loop with streaming fragments
    3. Cooperative cancellation through ``abort()`` from any thread

    ``on_token`` callbacks run on the worker thread.
    """

    def __init__(
        self,
        loader: Optional[ModelLoader] = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        name: str = "local"
    ):
        """Initialize engine.

        Args:
            loader: Loader used by load_model, defaults to a new ModelLoader
            batch_size: Maximum number of prompt tokens per decode call
            name: Name reported in errors and log lines
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.name = name
        self.batch_size = batch_size
        self._loader = loader or ModelLoader()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="inferlib-engine")
        self._runtime: Optional[ModelRuntime] = None
        self._lock = threading.Lock()
        self._pending: Set[CancellationToken] = set()
        self._closed = False

    @property
    def is_model_loaded(self) -> bool:
        return self._runtime is not None

    @property
    def context_size(self) -> Optional[int]:
        runtime = self._runtime
        return runtime.context_size if runtime is not None else None

    @property
    def loader(self) -> ModelLoader:
        return self._loader

    # Model lifecycle

    def submit_load(self, config: Union[ModelConfig, str]) -> "Future[None]":
        """Queue loading a model, replacing the current one."""
        return self._submit(self._load, config)

    def load_model(self, config: Union[ModelConfig, str]) -> None:
        """Load a model and wait for it.

        Raises:
            ModelLoadError: If loading fails; the engine is then left without a model
        """
        self.submit_load(config).result()

    def attach(self, runtime: ModelRuntime) -> None:
        """Use an already loaded runtime, replacing the current one."""
        self._submit(self._attach, runtime).result()

    def submit_unload(self) -> "Future[None]":
        return self._submit(self._unload)

    def unload(self) -> None:
        """Release the current model, if any, after pending calls finish."""
        self.submit_unload().result()

    def close(self) -> None:
        """Abort pending calls, unload the model and stop the worker."""
        with self._lock:
            if self._closed:
                return
        self.abort()
        self.unload()
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True)
        logger.debug(f"{self.name}: engine closed")

    def _load(self, config: Union[ModelConfig, str]) -> None:
        self._unload()
        self._runtime = self._loader.load(config)

    def _attach(self, runtime: ModelRuntime) -> None:
        if runtime is self._runtime:
            return
        self._unload()
        self._runtime = runtime

    def _unload(self) -> None:
        runtime, self._runtime = self._runtime, None
        if runtime is not None:
            runtime.close()

    # Generation

    def submit(
        self,
        prompt: str,
        params: Optional[GenerationParams] = None,
        on_token: Optional[TokenCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> "Future[str]":
        """Queue a generation call.

        Args:
            prompt: Finished prompt text
            params: Sampling parameters, defaults to GenerationParams()
            on_token: Optional callback receiving fragments on the worker thread
            cancel_token: Optional token cancelling this call only

        Returns:
            Future resolving to the generated text or raising a LocalGenerationError
        """
        params = params or GenerationParams()
        token = cancel_token or CancellationToken()

        with self._lock:
            self._pending.add(token)
        try:
            future = self._submit(self._generate, prompt, params, on_token, token)
        except RuntimeError:
            self._release(token)
            raise
        future.add_done_callback(lambda _future: self._release(token))
        return future

    def generate(
        self,
        prompt: str,
        params: Optional[GenerationParams] = None,
        on_token: Optional[TokenCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> str:
        """Run a generation call and wait for its result."""
        return self.submit(prompt, params, on_token, cancel_token).result()

    def abort(self) -> None:
        """Cancel the running call and any queued ones. Never blocks or raises."""
        with self._lock:
            tokens = list(self._pending)
        if tokens:
            logger.info(f"{self.name}: aborting {len(tokens)} generation call(s)")
        for token in tokens:
            token.cancel()

    def _submit(self, fn, *args) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Engine '{self.name}' is closed")
            return self._executor.submit(fn, *args)

    def _release(self, token: CancellationToken) -> None:
        with self._lock:
            self._pending.discard(token)

    def _generate(
        self,
        prompt: str,
        params: GenerationParams,
        on_token: Optional[TokenCallback],
        cancel_token: CancellationToken
    ) -> str:
        runtime = self._runtime
        if runtime is None:
            raise ModelNotLoadedError(provider_name=self.name)
        if cancel_token.cancelled:
            raise GenerationAbortedError(provider_name=self.name)

        start = time.monotonic()
        session = self._start_session(runtime, prompt, params, cancel_token)

        for _ in range(session.budget):
            token = session.sampler.sample(runtime.logits())
            if runtime.is_end_of_generation(token):
                break

            session.sampler.accept(token)
            session.tokens.append(token)
            session.generated += 1
            self._emit(session, session.detokenizer.decode(token), on_token)

            status = runtime.decode([token], session.position, True)
            if status != 0:
                raise DecodeFailedError(status, provider_name=self.name)
            session.position += 1

            if cancel_token.cancelled:
                logger.info(f"{self.name}: generation aborted after {session.generated} tokens")
                raise GenerationAbortedError(provider_name=self.name)

        self._emit(session, session.detokenizer.flush(), on_token)

        elapsed = time.monotonic() - start
        logger.debug(f"{self.name}: generated {session.generated} tokens in {elapsed:.2f}s")
        return session.text

    def _start_session(
        self,
        runtime: ModelRuntime,
        prompt: str,
        params: GenerationParams,
        cancel_token: CancellationToken
    ) -> GenerationSession:
        try:
            tokens = runtime.tokenize(prompt, True)
        except ValueError as e:
            raise TokenizationFailedError(prompt, provider_name=self.name, cause=e) from e
        if not tokens:
            raise TokenizationFailedError(prompt, provider_name=self.name)

        n_ctx = runtime.context_size
        available = n_ctx - len(tokens)
        if available <= 0:
            raise ContextOverflowError(requested=len(tokens), available=n_ctx, provider_name=self.name)

        budget = min(params.max_tokens, available)
        logger.debug(f"{self.name}: prompt_tokens={len(tokens)}, n_ctx={n_ctx}, budget={budget}")

        runtime.clear_cache()
        self._decode_prompt(runtime, tokens)

        if cancel_token.cancelled:
            raise GenerationAbortedError(provider_name=self.name)

        return GenerationSession(
            tokens=list(tokens),
            position=len(tokens),
            budget=budget,
            sampler=build_sampler_chain(params),
            detokenizer=Detokenizer(runtime),
            cancel_token=cancel_token,
        )

    def _decode_prompt(self, runtime: ModelRuntime, tokens: List[int]) -> None:
        n_tokens = len(tokens)
        for start in range(0, n_tokens, self.batch_size):
            batch = tokens[start:start + self.batch_size]
            is_last = start + len(batch) >= n_tokens
            status = runtime.decode(batch, start, is_last)
            if status != 0:
                raise DecodeFailedError(status, provider_name=self.name)

    @staticmethod
    def _emit(session: GenerationSession, fragment: str, on_token: Optional[TokenCallback]) -> None:
        if not fragment:
            return
        session.output.append(fragment)
        if on_token is not None:
            on_token(fragment)

    def __enter__(self) -> "LocalInferenceEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
