"""Test doubles for the llama.cpp runtime and the aiohttp session."""

import asyncio
import ctypes
import json
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np


BOS = 1
EOG = 2


class FakeRuntime:
    """Scripted stand-in for ``ModelHandle``.

    The prompt tokenizes to ``prompt_tokens`` (or BOS plus one token per
    word). After each decode the logits peak at the next token of
    ``script``; once the script runs out they peak at the end-of-generation
    token.
    """

    def __init__(
        self,
        n_ctx: int = 64,
        script: Sequence[int] = (10, 11, 12, EOG),
        prompt_tokens: Optional[Sequence[int]] = None,
        vocab: Optional[Dict[int, bytes]] = None,
        n_vocab: int = 32,
        reject_prompt: bool = False,
        prompt_decode_status: int = 0,
        fail_generated_decode_at: Optional[int] = None,
        generated_decode_status: int = -3,
        on_generated_decode: Optional[Callable[[int], None]] = None,
    ):
        self.n_ctx = n_ctx
        self.script = list(script)
        self.prompt_tokens = list(prompt_tokens) if prompt_tokens is not None else None
        self.vocab = {i: f"<{i}>".encode() for i in range(n_vocab)}
        self.vocab.update(vocab or {})
        self.n_vocab = n_vocab
        self.reject_prompt = reject_prompt
        self.prompt_decode_status = prompt_decode_status
        self.fail_generated_decode_at = fail_generated_decode_at
        self.generated_decode_status = generated_decode_status
        self.on_generated_decode = on_generated_decode

        self.decode_calls: List[tuple] = []
        self.piece_calls: List[tuple] = []
        self.clear_count = 0
        self.closed = False
        self._prompt_len = 0
        self._step = 0

    @property
    def context_size(self) -> int:
        return self.n_ctx

    def tokenize(self, text: str, add_bos: bool) -> List[int]:
        if self.reject_prompt:
            raise ValueError("rejected")
        if self.prompt_tokens is not None:
            tokens = list(self.prompt_tokens)
        else:
            tokens = ([BOS] if add_bos else []) + [20 + (i % 10) for i, _ in enumerate(text.split())]
        self._prompt_len = len(tokens)
        self._step = 0
        return tokens

    def clear_cache(self) -> None:
        self.clear_count += 1

    def decode(self, tokens: Sequence[int], start_pos: int, logits_last: bool) -> int:
        self.decode_calls.append((list(tokens), start_pos, logits_last))
        if start_pos < self._prompt_len:
            return self.prompt_decode_status

        self._step += 1
        if self.on_generated_decode is not None:
            self.on_generated_decode(self._step)
        if self.fail_generated_decode_at == self._step:
            return self.generated_decode_status
        return 0

    @property
    def generated_decodes(self) -> List[tuple]:
        return [call for call in self.decode_calls if call[1] >= self._prompt_len]

    def logits(self) -> np.ndarray:
        values = np.zeros(self.n_vocab, dtype=np.float64)
        target = self.script[self._step] if self._step < len(self.script) else EOG
        values[target] = 10.0
        return values

    def token_to_piece(self, token: int, buffer) -> int:
        self.piece_calls.append((token, len(buffer)))
        data = self.vocab[token]
        if len(data) > len(buffer):
            return -len(data)
        ctypes.memmove(buffer, data, len(data))
        return len(data)

    def is_end_of_generation(self, token: int) -> bool:
        return token == EOG

    def close(self) -> None:
        self.closed = True


class _FakeResponse:
    def __init__(self, transport: "FakeTransport"):
        self._transport = transport
        self.status = transport.status

    async def __aenter__(self):
        if self._transport.delay:
            await asyncio.sleep(self._transport.delay)
        if self._transport.error is not None:
            raise self._transport.error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def read(self) -> bytes:
        return self._transport.body


class _FakeSession:
    def __init__(self, transport: "FakeTransport", kwargs: dict):
        self._transport = transport
        self.kwargs = kwargs

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def post(self, url, json=None, headers=None):
        self._transport.requests.append({"url": str(url), "json": json, "headers": dict(headers or {})})
        return _FakeResponse(self._transport)


class FakeTransport:
    """Scripted HTTP layer that counts every request it receives."""

    def __init__(self):
        self.requests: List[dict] = []
        self.sessions: List[_FakeSession] = []
        self.status = 200
        self.body = b""
        self.delay = 0.0
        self.error: Optional[BaseException] = None
        self.reply_json({"choices": [{"message": {"content": "Hello there"}}]})

    def reply_json(self, payload, status: int = 200) -> None:
        self.reply(json.dumps(payload), status)

    def reply(self, body: str, status: int = 200) -> None:
        self.body = body.encode("utf-8")
        self.status = status

    def session_factory(self, **kwargs) -> _FakeSession:
        session = _FakeSession(self, kwargs)
        self.sessions.append(session)
        return session

    @property
    def request_count(self) -> int:
        return len(self.requests)
