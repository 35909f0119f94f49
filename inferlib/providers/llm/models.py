"""Model configuration and generation parameters."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GenerationParams(BaseModel):
    """Sampling configuration for one generation call.

    ``temperature == 0`` selects deterministic (greedy) sampling; in that
    mode only ``repeat_penalty`` and ``repeat_penalty_window`` still affect
    the result. ``seed=None`` draws a fresh random seed per call, an explicit
    seed makes sampling at non-zero temperature reproducible for a given
    model state.
    """

    model_config = ConfigDict(frozen=True)

    max_tokens: int = Field(default=256, ge=1)
    temperature: float = Field(default=0.7, ge=0.0)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)
    top_k: int = Field(default=40, ge=1)
    repeat_penalty: float = Field(default=1.1, ge=1.0)
    repeat_penalty_window: int = Field(default=64, ge=0)
    seed: Optional[int] = Field(default=None, ge=0)

    @property
    def is_greedy(self) -> bool:
        """Whether these parameters select arg-max sampling."""
        return self.temperature == 0

    @classmethod
    def deterministic(cls, **overrides) -> "GenerationParams":
        """Preset for reproducible output: greedy sampling, top_p=1, top_k=1."""
        values = {"temperature": 0.0, "top_p": 1.0, "top_k": 1}
        values.update(overrides)
        return cls(**values)


class ModelConfig(BaseModel):
    """Load-time configuration of a local GGUF model."""

    path: str = Field(..., description="Path to model file")
    n_ctx: int = Field(default=2048, gt=0, description="Context window size in tokens")
    n_batch: int = Field(default=512, gt=0, description="Maximum tokens per decode call")
    n_threads: int = Field(default=4, gt=0)
    n_gpu_layers: int = Field(default=0, description="Layers to offload to GPU. -1 means all, 0 means CPU only")
    use_mmap: bool = Field(default=True)

    @field_validator("path")
    def validate_path(cls, v: str) -> str:
        """Validate path is not blank."""
        if not v.strip():
            raise ValueError("Model path must not be empty")
        return v
