"""In-process llama.cpp inference."""

from .detokenize import Detokenizer
from .engine import GenerationSession, LocalInferenceEngine
from .handle import GGUF_MAGIC, ModelHandle, ModelLoader, ModelRuntime
from .provider import LocalModelProvider, LocalProviderSettings
from .sampling import SamplerChain, build_sampler_chain

__all__ = [
    "Detokenizer",
    "GenerationSession",
    "LocalInferenceEngine",
    "GGUF_MAGIC",
    "ModelHandle",
    "ModelLoader",
    "ModelRuntime",
    "LocalModelProvider",
    "LocalProviderSettings",
    "SamplerChain",
    "build_sampler_chain",
]
