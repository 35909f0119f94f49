"""Async iterator view over a generation call.

``GenerationStream`` turns the callback-based ``on_token`` contract into an
async iterator of text fragments with a terminal result. Fragments may be
produced on any thread (the local engine delivers them from its worker);
they are handed to the event loop with ``call_soon_threadsafe`` so the
consumer sees them in generation order, followed by the end of iteration.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .cancellation import CancellationToken
from .errors import AbortedError

logger = logging.getLogger(__name__)

StartGeneration = Callable[[Callable[[str], None], CancellationToken], Awaitable[str]]

_DONE = object()


class GenerationStream:
    """Stream of fragments produced by one generate call.

    Usage::

        async with provider.stream(prompt, params) as stream:
            async for fragment in stream:
                print(fragment, end="")
            text = await stream.result()

    Leaving the ``async with`` block early cancels the call. Errors of the
    underlying call are raised from the iteration (after every fragment
    produced before the failure has been yielded) and from ``result()``.
    """

    def __init__(self, start: StartGeneration, cancel_token: Optional[CancellationToken] = None):
        self._start = start
        self._token = cancel_token or CancellationToken()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._fragments: List[str] = []
        self._finished = False

    @property
    def cancel_token(self) -> CancellationToken:
        return self._token

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def fragments(self) -> List[str]:
        """Fragments consumed so far."""
        return list(self._fragments)

    def _ensure_started(self) -> None:
        if self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._task = self._loop.create_task(self._start(self._on_token, self._token))
        self._task.add_done_callback(lambda _task: self._queue.put_nowait(_DONE))

    def _on_token(self, fragment: str) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, fragment)

    def __aiter__(self) -> "GenerationStream":
        self._ensure_started()
        return self

    async def __anext__(self) -> str:
        self._ensure_started()
        if self._finished:
            raise StopAsyncIteration

        item = await self._queue.get()
        if item is _DONE:
            self._finished = True
            # Surface the failure of the call, if any
            self._task.result()
            raise StopAsyncIteration

        self._fragments.append(item)
        return item

    async def result(self) -> str:
        """Wait for the call to finish and return the complete text."""
        self._ensure_started()
        async for _fragment in self:
            pass
        return self._task.result()

    def cancel(self) -> None:
        """Request cancellation of the underlying call. Never raises."""
        self._token.cancel()

    async def aclose(self) -> None:
        """Cancel the call if still running and wait for it to settle."""
        if self._task is None:
            return
        if self._task.done():
            if not self._task.cancelled():
                # Already surfaced through iteration or result()
                self._task.exception()
            return

        self.cancel()
        try:
            await self._task
        except AbortedError:
            logger.debug("Generation stream closed after abort")

    async def __aenter__(self) -> "GenerationStream":
        self._ensure_started()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
