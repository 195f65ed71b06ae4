"""
Typed observer channels.

Each component owns the channels for the notifications it emits, so a
subscriber's lifetime is tied to the component it listens to rather than
to process-wide state. Subscribing returns an unsubscribe callable.

Usage:
    unsubscribe = controller.difficulty_changed.subscribe(on_change)
    ...
    unsubscribe()
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventChannel(Generic[T]):
    """Synchronous, in-order delivery of one payload type to its subscribers."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a callback.

        Registering the same callback twice has no effect.

        Returns:
            A callable that removes this subscription
        """
        if callback not in self._subscribers:
            self._subscribers.append(callback)
            logger.debug("[EventChannel:%s] Subscribed %r", self.name, callback)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Callable[[T], None]) -> None:
        try:
            self._subscribers.remove(callback)
            logger.debug("[EventChannel:%s] Unsubscribed %r", self.name, callback)
        except ValueError:
            pass  # Not subscribed

    def emit(self, payload: T) -> None:
        """
        Deliver a payload to every subscriber.

        A failing subscriber is logged and skipped; the rest still receive
        the payload.
        """
        for callback in list(self._subscribers):
            try:
                callback(payload)
            except Exception:
                logger.exception("[EventChannel:%s] Subscriber %r failed", self.name, callback)

    def clear(self) -> None:
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def __repr__(self) -> str:
        return f"EventChannel(name={self.name}, subscribers={len(self._subscribers)})"
