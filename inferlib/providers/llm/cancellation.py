"""Thread-safe cancellation token threaded through generation calls."""

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation flag that may be set from any thread.

    The local engine polls ``cancelled`` between tokens; the cloud client
    registers a callback that cancels its in-flight request task. Callbacks
    run exactly once, on the thread that calls ``cancel()``, or immediately
    when registered on an already cancelled token.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Idempotent and never raises."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                # cancel() is called from abort(), which must never raise
                logger.warning(f"Cancellation callback {callback!r} failed: {e}")

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` when the token is cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
