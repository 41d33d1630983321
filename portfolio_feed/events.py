"""Listener registry for monitor events.

Listeners are plain synchronous callables. A listener that raises is
logged and skipped; the remaining listeners still receive the event.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class EventBus:
    """Per-event-name set of listeners with subscribe/unsubscribe."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, callback: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        if callback not in self._listeners[event]:
            self._listeners[event].append(callback)

        def _unsubscribe() -> None:
            self.off(event, callback)

        return _unsubscribe

    def off(self, event: str, callback: Listener) -> None:
        listeners = self._listeners.get(event)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def emit(self, event: str, data: Any = None) -> None:
        # Copy so listeners may unsubscribe while being called
        for callback in list(self._listeners.get(event, ())):
            try:
                callback(data)
            except Exception:
                logger.exception("Error in listener for %s event", event)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))
