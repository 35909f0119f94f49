"""Sampler chain for the local engine.

The chain turns the logits of the last decoded position into the next
token id. Transforms are applied in a fixed order:

1. repetition penalty over the most recently sampled tokens
2. arg-max when temperature is 0, otherwise
   top-k, then top-p (nucleus), then temperature, then a random draw
   from the softmax of what is left

All arithmetic is done with numpy on a ``Candidates`` set that keeps token
ids and logits side by side, so filters can drop entries without losing
track of which token each logit belongs to.
"""

import logging
import secrets
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional

import numpy as np

from ..models import GenerationParams

logger = logging.getLogger(__name__)


@dataclass
class Candidates:
    """Token ids with their (possibly transformed) logits."""
    ids: np.ndarray
    logits: np.ndarray

    @classmethod
    def from_logits(cls, logits: Iterable[float]) -> "Candidates":
        values = np.asarray(logits, dtype=np.float64)
        return cls(ids=np.arange(values.shape[0], dtype=np.int64), logits=values.copy())

    def __len__(self) -> int:
        return int(self.ids.shape[0])

    def sorted(self) -> "Candidates":
        """Copy ordered by descending logit; ties keep the lower token id first."""
        order = np.argsort(-self.logits, kind="stable")
        return Candidates(ids=self.ids[order], logits=self.logits[order])

    def probabilities(self) -> np.ndarray:
        return softmax(self.logits)


def softmax(logits: np.ndarray) -> np.ndarray:
    shifted = logits - np.max(logits)
    weights = np.exp(shifted)
    return weights / weights.sum()


class RepetitionPenalty:
    """Discourages tokens sampled within the last ``window`` steps.

    Positive logits are divided by the penalty, negative ones multiplied,
    so a penalised token always becomes less likely. A window of 0 or a
    penalty of 1.0 disables the transform.
    """

    def __init__(self, penalty: float, window: int):
        self.penalty = penalty
        self.window = window
        self._history: Deque[int] = deque(maxlen=max(window, 0))

    @property
    def enabled(self) -> bool:
        return self.window > 0 and self.penalty != 1.0

    @property
    def history(self) -> List[int]:
        return list(self._history)

    def accept(self, token: int) -> None:
        if self.window > 0:
            self._history.append(token)

    def apply(self, candidates: Candidates) -> Candidates:
        if not self.enabled or not self._history:
            return candidates
        mask = np.isin(candidates.ids, np.fromiter(set(self._history), dtype=np.int64))
        logits = candidates.logits.copy()
        penalised = logits[mask]
        logits[mask] = np.where(penalised > 0, penalised / self.penalty, penalised * self.penalty)
        return Candidates(ids=candidates.ids, logits=logits)

    def __repr__(self) -> str:
        return f"RepetitionPenalty(penalty={self.penalty}, window={self.window})"


class TopK:
    """Keeps the ``k`` highest-scoring candidates."""

    def __init__(self, k: int, min_keep: int = 1):
        self.k = max(k, min_keep)

    def apply(self, candidates: Candidates) -> Candidates:
        ordered = candidates.sorted()
        if self.k >= len(ordered):
            return ordered
        return Candidates(ids=ordered.ids[:self.k], logits=ordered.logits[:self.k])

    def __repr__(self) -> str:
        return f"TopK(k={self.k})"


class TopP:
    """Keeps the smallest prefix whose cumulative probability reaches ``p``."""

    def __init__(self, p: float, min_keep: int = 1):
        self.p = p
        self.min_keep = min_keep

    def apply(self, candidates: Candidates) -> Candidates:
        ordered = candidates.sorted()
        if self.p >= 1.0:
            return ordered
        cumulative = np.cumsum(ordered.probabilities())
        keep = int(np.searchsorted(cumulative, self.p, side="left")) + 1
        keep = min(max(keep, self.min_keep), len(ordered))
        return Candidates(ids=ordered.ids[:keep], logits=ordered.logits[:keep])

    def __repr__(self) -> str:
        return f"TopP(p={self.p})"


class Temperature:
    """Scales logits by ``1 / temperature``."""

    def __init__(self, temperature: float):
        if temperature <= 0:
            raise ValueError("Temperature transform requires a positive temperature")
        self.temperature = temperature

    def apply(self, candidates: Candidates) -> Candidates:
        return Candidates(ids=candidates.ids, logits=candidates.logits / self.temperature)

    def __repr__(self) -> str:
        return f"Temperature({self.temperature})"


class GreedySelector:
    """Picks the highest logit."""

    def select(self, candidates: Candidates) -> int:
        return int(candidates.ids[int(np.argmax(candidates.logits))])

    def __repr__(self) -> str:
        return "Greedy()"


class DistributionSelector:
    """Draws a token from the softmax of the remaining candidates."""

    def __init__(self, seed: int):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def select(self, candidates: Candidates) -> int:
        index = self._rng.choice(len(candidates), p=candidates.probabilities())
        return int(candidates.ids[index])

    def __repr__(self) -> str:
        return f"Distribution(seed={self.seed})"


class SamplerChain:
    """Ordered transforms followed by a selector.

    ``accept`` must be called with each token that is kept so the
    repetition penalty sees it.
    """

    def __init__(self, penalty: RepetitionPenalty, transforms: List, selector, seed: Optional[int] = None):
        self.penalty = penalty
        self.transforms = transforms
        self.selector = selector
        self.seed = seed

    def sample(self, logits: Iterable[float]) -> int:
        candidates = self.penalty.apply(Candidates.from_logits(logits))
        for transform in self.transforms:
            candidates = transform.apply(candidates)
        return self.selector.select(candidates)

    def accept(self, token: int) -> None:
        self.penalty.accept(token)

    def describe(self) -> List[str]:
        """Stage names in application order."""
        return [repr(self.penalty)] + [repr(t) for t in self.transforms] + [repr(self.selector)]


def resolve_seed(params: GenerationParams) -> int:
    """Explicit seed from params, or a fresh random one."""
    if params.seed is not None:
        return params.seed
    return secrets.randbits(32)


def build_sampler_chain(params: GenerationParams) -> SamplerChain:
    """Build the sampler chain for one generation call."""
    penalty = RepetitionPenalty(params.repeat_penalty, params.repeat_penalty_window)

    if params.is_greedy:
        chain = SamplerChain(penalty, [], GreedySelector())
    else:
        seed = resolve_seed(params)
        chain = SamplerChain(
            penalty,
            [TopK(params.top_k), TopP(params.top_p), Temperature(params.temperature)],
            DistributionSelector(seed),
            seed=seed,
        )

    logger.debug(f"Sampler chain: {' -> '.join(chain.describe())}")
    return chain
