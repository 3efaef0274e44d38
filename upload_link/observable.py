"""
Minimal push-based observable used between pipeline stages.

A subscriber function receives a :class:`SubscriptionObserver` and may return
a cleanup callable. The observer delivers at most one terminal signal and
drops everything after it, or after the subscription was cancelled.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Observer(Protocol):
    """Receiver of observable signals."""

    def next(self, value: Any) -> None: ...

    def error(self, error: BaseException) -> None: ...

    def complete(self) -> None: ...


class _CallbackObserver:
    def __init__(
        self,
        on_next: Optional[Callable[[Any], None]],
        on_error: Optional[Callable[[BaseException], None]],
        on_complete: Optional[Callable[[], None]],
    ) -> None:
        self._on_next = on_next
        self._on_error = on_error
        self._on_complete = on_complete

    def next(self, value: Any) -> None:
        if self._on_next is not None:
            self._on_next(value)

    def error(self, error: BaseException) -> None:
        if self._on_error is None:
            logger.error("Unhandled error in observable: %s", error, exc_info=error)
            return
        self._on_error(error)

    def complete(self) -> None:
        if self._on_complete is not None:
            self._on_complete()


class Subscription:
    """Handle returned by :meth:`Observable.subscribe`."""

    def __init__(self) -> None:
        self._closed = False
        self._cleanup: Optional[Callable[[], None]] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self) -> None:
        """Stop delivery and run the cleanup; later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self._run_cleanup()

    def _close(self) -> None:
        # terminal signal delivered; the producer finished on its own
        self._closed = True
        self._cleanup = None

    def _run_cleanup(self) -> None:
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            cleanup()


class SubscriptionObserver:
    """Observer wrapper enforcing the delivery contract."""

    def __init__(self, observer: Observer, subscription: Subscription) -> None:
        self._observer = observer
        self._subscription = subscription

    @property
    def closed(self) -> bool:
        return self._subscription.closed

    def next(self, value: Any) -> None:
        if not self.closed:
            self._observer.next(value)

    def error(self, error: BaseException) -> None:
        if self.closed:
            logger.debug("Dropping error on closed subscription: %s", error)
            return
        self._subscription._close()
        self._observer.error(error)

    def complete(self) -> None:
        if self.closed:
            return
        self._subscription._close()
        self._observer.complete()


class Observable:
    """
    Lazy producer of values.

    Examples:
        ```python
        subscription = link.request(operation).subscribe(
            on_next=print,
            on_error=lambda e: print("failed", e),
        )
        subscription.unsubscribe()
        ```
    """

    def __init__(self, subscriber: Callable[[SubscriptionObserver], Optional[Callable[[], None]]]) -> None:
        self._subscriber = subscriber

    def subscribe(
        self,
        observer: Optional[Observer] = None,
        *,
        on_next: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> Subscription:
        """Start the producer and return its subscription."""
        if observer is None:
            observer = _CallbackObserver(on_next, on_error, on_complete)

        subscription = Subscription()
        wrapped = SubscriptionObserver(observer, subscription)
        try:
            cleanup = self._subscriber(wrapped)
        except Exception as e:
            wrapped.error(e)
            return subscription

        if not subscription.closed:
            subscription._cleanup = cleanup
        return subscription
