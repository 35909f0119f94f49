"""Token to text conversion for the local engine."""

import codecs
import ctypes
import logging

from ..errors import LocalGenerationError
from .handle import ModelRuntime

logger = logging.getLogger(__name__)

INITIAL_BUFFER_SIZE = 256


class Detokenizer:
    """Converts sampled tokens into text fragments.

    The runtime writes a token's bytes into a buffer owned by this object.
    When the buffer is too small the runtime reports the required size as a
    negative count; the buffer is then grown to exactly that size and the
    conversion retried once. The grown buffer is kept for later tokens.

    Bytes go through an incremental UTF-8 decoder, so a character split
    across several tokens is emitted whole with the token that completes it.
    """

    def __init__(self, runtime: ModelRuntime, initial_size: int = INITIAL_BUFFER_SIZE):
        self._runtime = runtime
        self._buffer = ctypes.create_string_buffer(initial_size)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)

    def token_bytes(self, token: int) -> bytes:
        """Raw bytes of a single token."""
        n = self._runtime.token_to_piece(token, self._buffer)
        if n < 0:
            required = -n
            logger.debug(f"Growing detokenizer buffer from {len(self._buffer)} to {required} bytes")
            self._buffer = ctypes.create_string_buffer(required)
            n = self._runtime.token_to_piece(token, self._buffer)
            if n < 0:
                raise LocalGenerationError(f"Token {token} does not fit a buffer of the reported size {required}")
        return self._buffer.raw[:n]

    def decode(self, token: int) -> str:
        """Text completed by this token; empty while a character is still partial."""
        return self._decoder.decode(self.token_bytes(token))

    def flush(self) -> str:
        """Text for any trailing incomplete byte sequence."""
        return self._decoder.decode(b"", final=True)
