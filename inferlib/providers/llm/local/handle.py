"""Loaded llama.cpp model handles and the loader that creates them.

A ``ModelHandle`` owns the native model (weights, read-only) and its
decoding context (KV cache and sequence position, mutable). The engine only
talks to it through the ``ModelRuntime`` protocol, which keeps the sampling
loop independent of the llama.cpp bindings.

This module uses the low-level ctypes API of llama-cpp-python, imported
lazily so that the rest of the package works without the native library.
"""

import logging
import os
import threading
import time
from typing import Any, List, Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np

from ....core.errors import ErrorContext, ProviderError
from ..errors import (
    ContextInitializationFailedError,
    InvalidModelFileError,
    ModelFileNotFoundError,
    ModelLoadError,
    ModelLoadFailedError,
    UnreadableModelFileError,
)
from ..models import ModelConfig

logger = logging.getLogger(__name__)

GGUF_MAGIC = b"GGUF"


@runtime_checkable
class ModelRuntime(Protocol):
    """Operations the inference engine needs from a loaded model.

    ``tokenize`` raises ``ValueError`` when the tokenizer rejects the text.
    ``decode`` returns the runtime status code, 0 on success; ``logits_last``
    requests logits for the final token of the batch only.
    ``token_to_piece`` writes the token's bytes into ``buffer`` and returns
    the number of bytes written, or the negated required size when the
    buffer is too small.
    """

    @property
    def context_size(self) -> int: ...

    def tokenize(self, text: str, add_bos: bool) -> List[int]: ...

    def clear_cache(self) -> None: ...

    def decode(self, tokens: Sequence[int], start_pos: int, logits_last: bool) -> int: ...

    def logits(self) -> np.ndarray: ...

    def token_to_piece(self, token: int, buffer: Any) -> int: ...

    def is_end_of_generation(self, token: int) -> bool: ...

    def close(self) -> None: ...


def _import_llama_cpp():
    try:
        import llama_cpp
    except ImportError as e:
        raise ProviderError(
            message="llama-cpp-python package not installed",
            context=ErrorContext.create(help="Install with: pip install llama-cpp-python"),
            cause=e
        ) from e
    return llama_cpp


class ModelHandle:
    """Native llama.cpp model plus its exclusively owned decoding context."""

    def __init__(self, llama_cpp: Any, model: Any, context: Any, source_path: str):
        self._llama = llama_cpp
        self._model = model
        self._context = context
        self._vocab = llama_cpp.llama_model_get_vocab(model)
        self._n_vocab = int(llama_cpp.llama_vocab_n_tokens(self._vocab))
        self._n_ctx = int(llama_cpp.llama_n_ctx(context))
        self._close_lock = threading.Lock()
        self._closed = False
        self.source_path = source_path

    @property
    def context_size(self) -> int:
        return self._n_ctx

    @property
    def vocab_size(self) -> int:
        return self._n_vocab

    @property
    def closed(self) -> bool:
        return self._closed

    def tokenize(self, text: str, add_bos: bool) -> List[int]:
        data = text.encode("utf-8")
        n_max = len(data) + 2
        tokens = (self._llama.llama_token * n_max)()
        n_tokens = self._llama.llama_tokenize(
            self._vocab, data, len(data), tokens, n_max, add_bos, False
        )
        if n_tokens < 0:
            raise ValueError(f"Tokenizer rejected input (status {n_tokens})")
        return list(tokens[:n_tokens])

    def clear_cache(self) -> None:
        get_memory = getattr(self._llama, "llama_get_memory", None)
        if get_memory is not None:
            memory = get_memory(self._context)
            if memory:
                self._llama.llama_memory_clear(memory, True)
            return
        self._llama.llama_kv_self_clear(self._context)

    def decode(self, tokens: Sequence[int], start_pos: int, logits_last: bool) -> int:
        n_tokens = len(tokens)
        batch = self._llama.llama_batch_init(n_tokens, 0, 1)
        try:
            batch.n_tokens = n_tokens
            for i, token in enumerate(tokens):
                batch.token[i] = token
                batch.pos[i] = start_pos + i
                batch.n_seq_id[i] = 1
                batch.seq_id[i][0] = 0
                batch.logits[i] = 1 if (logits_last and i == n_tokens - 1) else 0
            return int(self._llama.llama_decode(self._context, batch))
        finally:
            self._llama.llama_batch_free(batch)

    def logits(self) -> np.ndarray:
        pointer = self._llama.llama_get_logits_ith(self._context, -1)
        return np.ctypeslib.as_array(pointer, shape=(self._n_vocab,)).astype(np.float64)

    def token_to_piece(self, token: int, buffer: Any) -> int:
        return int(self._llama.llama_token_to_piece(
            self._vocab, token, buffer, len(buffer), 0, False
        ))

    def is_end_of_generation(self, token: int) -> bool:
        return bool(self._llama.llama_vocab_is_eog(self._vocab, token))

    def close(self) -> None:
        """Free the context and the model. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._llama.llama_free(self._context)
        self._llama.llama_model_free(self._model)
        logger.info(f"Released model: {os.path.basename(self.source_path)}")

    def __repr__(self) -> str:
        return f"ModelHandle(source_path={self.source_path!r}, n_ctx={self._n_ctx}, closed={self._closed})"


class ModelLoader:
    """Creates ``ModelHandle`` instances from GGUF files.

    The llama.cpp backend is initialised once per process. The outcome of
    the most recent load is kept in ``last_error`` and
    ``last_load_duration`` for diagnostics.
    """

    _backend_initialized = False
    _backend_lock = threading.Lock()

    def __init__(self):
        self.last_error: Optional[ModelLoadError] = None
        self.last_load_duration: Optional[float] = None

    def load(self, config: Union[ModelConfig, str]) -> ModelHandle:
        """Load a model and create its decoding context.

        Args:
            config: Model configuration, or a bare path using default settings

        Returns:
            A new model handle owned by the caller

        Raises:
            ModelLoadError: If the file is missing, unreadable, not GGUF, or
                rejected by the runtime
        """
        if isinstance(config, str):
            config = ModelConfig(path=config)

        path = os.path.abspath(os.path.expanduser(config.path))
        self.last_error = None
        self.last_load_duration = None

        try:
            handle = self._load(path, config)
        except ModelLoadError as e:
            self.last_error = e
            logger.error(f"Model loading failed: {e.message}")
            raise

        return handle

    def _load(self, path: str, config: ModelConfig) -> ModelHandle:
        if not os.path.exists(path):
            raise ModelFileNotFoundError(path)

        self.validate_header(path)

        llama_cpp = _import_llama_cpp()
        self._ensure_backend(llama_cpp)

        start = time.monotonic()
        logger.info(f"Loading model from: {path}")

        model_params = llama_cpp.llama_model_default_params()
        model_params.n_gpu_layers = config.n_gpu_layers
        model_params.use_mmap = config.use_mmap

        model = llama_cpp.llama_model_load_from_file(path.encode("utf-8"), model_params)
        if not model:
            raise ModelLoadFailedError(path)

        context_params = llama_cpp.llama_context_default_params()
        context_params.n_ctx = config.n_ctx
        context_params.n_batch = config.n_batch
        context_params.n_threads = config.n_threads
        context_params.n_threads_batch = config.n_threads

        context = llama_cpp.llama_init_from_model(model, context_params)
        if not context:
            llama_cpp.llama_model_free(model)
            raise ContextInitializationFailedError(path)

        self.last_load_duration = time.monotonic() - start
        logger.info(f"Model loaded successfully in {self.last_load_duration:.2f} seconds: {path}")
        return ModelHandle(llama_cpp, model, context, path)

    @staticmethod
    def validate_header(path: str) -> None:
        """Check that the file starts with the GGUF magic bytes.

        Raises:
            UnreadableModelFileError: If the file cannot be opened or read
            InvalidModelFileError: If the magic bytes don't match
        """
        try:
            with open(path, "rb") as f:
                header = f.read(len(GGUF_MAGIC))
        except OSError as e:
            raise UnreadableModelFileError(path, e.strerror or str(e), cause=e) from e

        if header != GGUF_MAGIC:
            raise InvalidModelFileError(path)

    @classmethod
    def _ensure_backend(cls, llama_cpp: Any) -> None:
        with cls._backend_lock:
            if cls._backend_initialized:
                return
            llama_cpp.llama_backend_init()
            cls._backend_initialized = True
