"""In-process event streams: subscribe, publish, dispose."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

EventCallback = Callable[[T], object]


class Subscription(Generic[T]):
    """Handle returned by ``EventStream.subscribe``. Disposing it is idempotent."""

    __slots__ = ("_callback", "_stream")

    def __init__(self, stream: EventStream[T], callback: EventCallback[T]) -> None:
        self._stream: EventStream[T] | None = stream
        self._callback = callback

    @property
    def active(self) -> bool:
        return self._stream is not None

    def dispose(self) -> None:
        """Stop receiving events."""
        if self._stream is None:
            return
        self._stream._remove(self)
        self._stream = None

    def __enter__(self) -> Subscription[T]:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.dispose()


class EventStream(Generic[T]):
    """Ordered, synchronous fan-out of events to subscribers.

    Callbacks run in subscription order on the publisher's call stack, so
    they must not block. A callback that raises is logged and skipped; the
    remaining subscribers still receive the event.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscriptions: list[Subscription[T]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: EventCallback[T]) -> Subscription[T]:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        logger.debug("Subscribed to %s (subscribers=%d)", self.name, len(self._subscriptions))
        return subscription

    def publish(self, item: T) -> None:
        # Snapshot so callbacks may dispose their own subscription.
        for subscription in list(self._subscriptions):
            try:
                subscription._callback(item)
            except Exception:
                logger.exception("Subscriber of %s failed", self.name)

    def _remove(self, subscription: Subscription[T]) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            return
        logger.debug("Unsubscribed from %s (subscribers=%d)", self.name, len(self._subscriptions))
