"""
Cancellation primitives for in-flight requests.

An :class:`AbortController` owns an :class:`AbortSignal`. The signal is handed
to the fetch capability, which registers a listener and aborts its work when
the controller fires.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from .exceptions import AbortError

logger = logging.getLogger(__name__)


class AbortSignal:
    """Read side of a cancellation token."""

    def __init__(self) -> None:
        self._aborted = False
        self._listeners: List[Callable[[], None]] = []

    @property
    def aborted(self) -> bool:
        """Whether the owning controller has aborted."""
        return self._aborted

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback run once when the signal aborts.

        The callback runs immediately if the signal already aborted.

        Returns:
            A function that removes the callback again
        """
        if self._aborted:
            callback()
            return lambda: None

        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def throw_if_aborted(self) -> None:
        """Raise AbortError if the signal already aborted."""
        if self._aborted:
            raise AbortError()

    def _fire(self) -> None:
        if self._aborted:
            return
        self._aborted = True
        listeners, self._listeners = self._listeners, []
        for callback in listeners:
            try:
                callback()
            except Exception:
                logger.exception("Abort listener %r failed", callback)


class AbortController:
    """Write side of a cancellation token."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self) -> None:
        """Abort the signal; later calls are no-ops."""
        self.signal._fire()
