"""
qmarket.rpc.app
---------------

Ready-to-serve FastAPI application:

    GET/POST  /market/...   REST surface (`methods.build_rest_router`)
    POST      /rpc          JSON-RPC 2.0 (`jsonrpc.JsonRpcDispatcher`)
    WS        /market/ws    committed-event notifications
    GET       /metrics      Prometheus exposition
    GET       /healthz      liveness + ledger summary

Run with uvicorn:
    uvicorn --factory qmarket.rpc.app:create_app
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI

from qmarket import metrics
from qmarket.config import MarketConfig
from qmarket.market import Marketplace
from qmarket.version import __version__

from . import MARKET_OPENAPI_TAG, RPC_PREFIX
from .jsonrpc import JsonRpcDispatcher, build_jsonrpc_router
from .mount import mount_market, register_jsonrpc
from .ws import MarketWebSocketHub, build_ws_router

log = logging.getLogger(__name__)


def create_app(market: Optional[Marketplace] = None, *, config: Optional[MarketConfig] = None) -> FastAPI:
    market = market or Marketplace(config=config)
    app = FastAPI(title="qmarket", version=__version__, openapi_tags=[MARKET_OPENAPI_TAG])
    app.state.market = market

    mount_market(app, market, prefix=RPC_PREFIX)

    dispatcher = JsonRpcDispatcher()
    register_jsonrpc(dispatcher, market)
    app.include_router(build_jsonrpc_router(dispatcher))
    app.state.jsonrpc = dispatcher

    hub = MarketWebSocketHub()
    hub.attach(market)
    app.include_router(build_ws_router(hub), prefix=RPC_PREFIX)
    app.state.ws_hub = hub

    metrics.mount_fastapi(app)

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        led = market.ledger
        with led.view() as store:
            jobs = len(store.jobs)
            providers = len(store.providers)
        return {
            "ok": True,
            "version": __version__,
            "txCount": led.tx_count,
            "lastTs": led.now(),
            "jobs": jobs,
            "providers": providers,
        }

    log.info("app: created with %d JSON-RPC methods", len(dispatcher.names))
    return app


__all__ = ["create_app"]
