from __future__ import annotations

"""
qmarket.rpc.ws
--------------

WebSocket hub for committed marketplace events:

- market.providerRegistered   - market.paymentReleased
- market.jobSubmitted         - market.algorithmRegistered
- market.jobAssigned          - market.jobCancelled
- market.jobCompleted         - market.jobDisputed

Clients connect to the WS endpoint and optionally pass a comma-separated list
of `topics`. If omitted, they subscribe to all marketplace topics.

Example client (browser):
    const ws = new WebSocket("wss://host/market/ws?topics=market.jobSubmitted");
    ws.onmessage = (e) => console.log(JSON.parse(e.data));

Server wiring (FastAPI):
    hub = MarketWebSocketHub()
    hub.attach(market)
    app.include_router(build_ws_router(hub), prefix="/market")

The ledger publishes on whatever thread committed the transaction (FastAPI
runs sync routes in a worker pool), so `attach` forwards each event onto the
event loop captured from the first WebSocket connection.
"""

import asyncio
import concurrent.futures
import json
import logging
import time
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, MutableMapping, Optional, Set

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from qmarket.market import Marketplace
from qmarket.qtypes.events import EventType, MarketEvent, event_to_dict

log = logging.getLogger(__name__)


def topic_for(etype: EventType) -> str:
    name = etype.value
    return "market." + name[0].lower() + name[1:]


ALL_TOPICS = tuple(topic_for(t) for t in EventType)


def _log_emit_failure(topic: str, fut: "concurrent.futures.Future[None]") -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        log.error("ws: broadcast of %s failed: %r", topic, exc)


class MarketWebSocketHub:
    """
    Minimal topic hub that tracks WebSocket subscribers and broadcasts JSON messages.
    """

    def __init__(self) -> None:
        self._topics: MutableMapping[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def subscribe(self, ws: WebSocket, topics: Iterable[str]) -> None:
        self._loop = asyncio.get_running_loop()
        async with self._lock:
            for t in topics:
                if t in ALL_TOPICS:
                    self._topics[t].add(ws)

    async def unsubscribe(self, ws: WebSocket) -> None:
        async with self._lock:
            for t in list(self._topics.keys()):
                self._topics[t].discard(ws)
                if not self._topics[t]:
                    self._topics.pop(t, None)

    async def emit(self, topic: str, data: Dict[str, Any]) -> None:
        """
        Broadcast a message to all subscribers of `topic`.

        The envelope is:
            {"event": "<topic>", "ts": <unix_sec>, "data": <payload>}
        """
        if topic not in ALL_TOPICS:
            return
        envelope = {"event": topic, "ts": time.time(), "data": data}
        msg = json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)

        async with self._lock:
            targets = list(self._topics.get(topic, set()))
        if not targets:
            return

        stale: List[WebSocket] = []
        for ws in targets:
            try:
                await ws.send_text(msg)
            except (RuntimeError, WebSocketDisconnect):
                stale.append(ws)

        if stale:
            async with self._lock:
                for ws in stale:
                    for t in ALL_TOPICS:
                        self._topics[t].discard(ws)

    def forward(self, ev: MarketEvent) -> None:
        """EventBus handler: schedule a broadcast of `ev` on the hub's loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        topic = topic_for(ev.etype)
        fut = asyncio.run_coroutine_threadsafe(self.emit(topic, event_to_dict(ev)), loop)
        fut.add_done_callback(lambda f: _log_emit_failure(topic, f))

    def attach(self, market: Marketplace) -> Callable[[], None]:
        """Subscribe the hub to `market`'s committed events; returns the unsubscriber."""
        return market.subscribe(self.forward)


def build_ws_router(hub: MarketWebSocketHub) -> APIRouter:
    """
    Return a FastAPI APIRouter that serves the marketplace WS at `/ws`.

    Query params:
      - topics: comma-separated list, defaults to all topics
    """
    router = APIRouter()

    @router.websocket("/ws")
    async def market_ws(
        websocket: WebSocket,
        topics: str = Query(default=",".join(ALL_TOPICS)),
    ) -> None:
        wanted = [t.strip() for t in topics.split(",") if t.strip()]
        await websocket.accept()
        await hub.subscribe(websocket, wanted or ALL_TOPICS)
        try:
            while True:
                try:
                    msg = await websocket.receive_text()
                    if msg == "ping":
                        await websocket.send_text(json.dumps({"event": "pong", "ts": time.time()}))
                except WebSocketDisconnect:
                    break
        finally:
            await hub.unsubscribe(websocket)

    return router


__all__ = ["MarketWebSocketHub", "build_ws_router", "topic_for", "ALL_TOPICS"]
