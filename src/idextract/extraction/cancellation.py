"""Cooperative cancellation for extraction calls.

A ``CancellationToken`` is created by the caller and passed down to the
network layer. Cancelling it sets a flag that is checked before blocking
operations and runs registered callbacks, which wake a call waiting on
the network so it returns immediately.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class OperationCancelled(Exception):
    """Internal signal that unwinds a cancelled call.

    Not part of the error taxonomy: the extraction runner turns it into a
    ``Cancelled`` outcome before it reaches callers.
    """


class CancellationToken:
    """Thread-safe, one-shot cancellation flag with callbacks."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Cancel once; later calls are no-ops."""
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        logger.info("Extraction cancelled: %s", reason)
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation (immediately if already cancelled).

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                registered = True
            else:
                registered = False
        if not registered:
            callback()

        def unregister() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unregister

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self.reason or "cancelled")

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)
