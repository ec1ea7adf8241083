from __future__ import annotations

"""
qmarket.rpc.mount
-----------------

Helpers to mount the marketplace surface into an existing FastAPI app and/or
to register the JSON-RPC methods with your dispatcher.

Typical usage (REST):
    from fastapi import FastAPI
    from qmarket.rpc.mount import mount_market
    app = FastAPI()
    mount_market(app, market, prefix="/market")

Typical usage (JSON-RPC):
    from qmarket.rpc.mount import register_jsonrpc
    register_jsonrpc(dispatcher, market)

The dispatcher only needs an `.add(name, callable)` or
`.register(name, callable)` method.
"""

from typing import Any, Protocol

from qmarket.market import Marketplace

from . import MARKET_OPENAPI_TAG, RPC_PREFIX
from .methods import build_rest_router, make_methods


class _JsonRpcDispatcherLike(Protocol):
    """Minimal protocol to support common JSON-RPC dispatchers."""
    def add(self, method: str, func: Any) -> None: ...
    def register(self, method: str, func: Any) -> None: ...


def mount_market(app: Any, market: Marketplace, *, prefix: str = RPC_PREFIX) -> None:
    """
    Mount the marketplace REST endpoints under `prefix` on a FastAPI app.

    Parameters
    ----------
    app : fastapi.FastAPI
        Your FastAPI application instance.
    market : Marketplace
        The marketplace the routes operate on.
    prefix : str
        URL prefix for the mounted router (default: "/market").
    """
    router = build_rest_router(market)
    app.include_router(router, prefix=prefix, tags=[MARKET_OPENAPI_TAG["name"]])


def register_jsonrpc(dispatcher: _JsonRpcDispatcherLike, market: Marketplace) -> None:
    """
    Register JSON-RPC methods on a dispatcher, preferring `.add(name, fn)` and
    falling back to `.register(name, fn)`.
    """
    methods = make_methods(market)
    for name, fn in methods.items():
        try:
            dispatcher.add(name, fn)  # type: ignore[attr-defined]
        except AttributeError:
            dispatcher.register(name, fn)  # type: ignore[attr-defined]


__all__ = ["mount_market", "register_jsonrpc"]
