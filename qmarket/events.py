from __future__ import annotations
"""
In-process event bus.

The ledger publishes committed events here; RPC/WebSocket layers, indexers and
tests subscribe. Delivery is synchronous and in commit order. A failing
subscriber is logged and does not affect other subscribers or the already
committed transaction.
"""

import logging
from threading import RLock
from typing import Callable, Iterable, List

from .qtypes.events import MarketEvent

log = logging.getLogger(__name__)

Handler = Callable[[MarketEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: List[Handler] = []
        self._lock = RLock()

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register `handler`; returns a callable that unsubscribes it."""
        with self._lock:
            self._handlers.append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, events: Iterable[MarketEvent]) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for ev in events:
            for h in handlers:
                try:
                    h(ev)
                except Exception:
                    log.exception("events: subscriber %r failed on %s", h, ev.etype.value)


class EventRecorder:
    """Subscriber that keeps every event it sees, in order."""

    def __init__(self) -> None:
        self.events: List[MarketEvent] = []

    def __call__(self, ev: MarketEvent) -> None:
        self.events.append(ev)

    def of_type(self, etype) -> List[MarketEvent]:
        return [e for e in self.events if e.etype == etype]


__all__ = ["EventBus", "EventRecorder", "Handler"]
