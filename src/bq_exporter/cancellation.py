"""
Cooperative cancellation for export and load calls.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from .errors import LoadCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cancellation signal shared between a caller and one export or load call.

    The call checks the token at each blocking step (query submission, each
    row pull, each batch insert, the final commit). A token is cancelled
    either explicitly through cancel() or implicitly once its deadline passes.
    Callbacks registered with add_callback run once, on the thread that
    cancels the token.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds from now until the token expires. None means no deadline.
        """
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._callbacks: List[Callable[[str], None]] = []
        self._lock = threading.Lock()
        self.deadline: Optional[float] = time.monotonic() + timeout if timeout is not None else None

    def cancel(self, reason: str = 'operation cancelled') -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(reason)
            except Exception as e:
                logger.warning(f'Cancellation callback failed: {e}')

    def add_callback(self, callback: Callable[[str], None]) -> None:
        """Call callback(reason) on cancellation, right away if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback(self._reason or 'operation cancelled')

    def remove_callback(self, callback: Callable[[str], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel('deadline exceeded')
            return True
        return False

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise LoadCancelledError(self._reason or 'operation cancelled')

    def __repr__(self) -> str:
        return f'CancellationToken(cancelled={self.cancelled}, remaining={self.remaining()})'


def check(cancel: Optional[CancellationToken]) -> None:
    """Raise LoadCancelledError when an optional token has been cancelled."""
    if cancel is not None:
        cancel.raise_if_cancelled()
