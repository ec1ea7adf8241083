"""
qmarket.rpc.jsonrpc
===================

JSON-RPC 2.0 dispatcher for the marketplace methods.

• Single & batch requests and notifications. Params are bound to the
  method signature; the `market.*` methods are keyword-only, so they take
  named (object) params and reject arrays with Invalid params.
• `MarketError` codes map to stable numeric JSON-RPC codes
  (see `qmarket.rpc.methods.jsonrpc_error_code`); the error's `to_dict()`
  travels in `error.data`.
• Methods declaring a `caller` parameter receive the `X-Caller` header value
  when the request does not pass one explicitly.

Wiring:
    dispatcher = JsonRpcDispatcher()
    register_jsonrpc(dispatcher, market)
    app.include_router(build_jsonrpc_router(dispatcher))
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from fastapi import APIRouter, Request, Response

from qmarket.errors import MarketError

from . import CALLER_HEADER
from .methods import jsonrpc_error_code

log = logging.getLogger(__name__)

Json = Dict[str, Any]
Params = Union[List[Any], Dict[str, Any]]

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class JsonRpcError(Exception):
    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_obj(self) -> Json:
        err: Json = {"code": self.code, "message": self.message}
        if self.data is not None:
            err["data"] = self.data
        return err


def _error_obj(exc: Exception) -> Json:
    if isinstance(exc, JsonRpcError):
        return exc.to_obj()
    if isinstance(exc, MarketError):
        return {"code": jsonrpc_error_code(exc), "message": exc.message, "data": exc.to_dict()}
    log.exception("jsonrpc: unhandled error")
    return {"code": INTERNAL_ERROR, "message": "Internal error", "data": str(exc)}


_NO_ID = object()


class JsonRpcDispatcher:
    """Name → callable registry plus the request/response plumbing."""

    def __init__(self) -> None:
        self._methods: Dict[str, Callable[..., Any]] = {}

    def add(self, name: str, fn: Callable[..., Any]) -> None:
        if not name:
            raise ValueError("method name must be a non-empty string")
        if name in self._methods:
            raise ValueError(f"method already registered: {name}")
        self._methods[name] = fn
        log.debug("jsonrpc: registered %s", name)

    @property
    def names(self) -> List[str]:
        return sorted(self._methods)

    def _bind(self, fn: Callable[..., Any], params: Optional[Params], caller: Optional[str]) -> Tuple[list, dict]:
        sig = inspect.signature(fn)
        try:
            if params is None:
                bound = sig.bind_partial()
            elif isinstance(params, list):
                bound = sig.bind_partial(*params)
            else:
                bound = sig.bind_partial(**params)
        except TypeError as e:
            raise JsonRpcError(INVALID_PARAMS, "Invalid params", str(e)) from e
        if "caller" in sig.parameters and "caller" not in bound.arguments and caller:
            bound.arguments["caller"] = caller
        try:
            bound = sig.bind(*bound.args, **bound.kwargs)
        except TypeError as e:
            raise JsonRpcError(INVALID_PARAMS, "Invalid params", str(e)) from e
        return list(bound.args), dict(bound.kwargs)

    def dispatch_one(self, obj: Any, caller: Optional[str] = None) -> Optional[Json]:
        req_id = obj.get("id", _NO_ID) if isinstance(obj, dict) else None
        try:
            if not isinstance(obj, dict) or obj.get("jsonrpc") != "2.0":
                raise JsonRpcError(INVALID_REQUEST, "Invalid Request")
            method = obj.get("method")
            if not isinstance(method, str) or not method:
                raise JsonRpcError(INVALID_REQUEST, "method must be a non-empty string")
            params = obj.get("params")
            if params is not None and not isinstance(params, (list, dict)):
                raise JsonRpcError(INVALID_PARAMS, "params, if present, must be array or object")
            fn = self._methods.get(method)
            if fn is None:
                raise JsonRpcError(METHOD_NOT_FOUND, "Method not found", method)
            args, kwargs = self._bind(fn, params, caller)
            result = fn(*args, **kwargs)
            if req_id is _NO_ID:
                return None
            return {"jsonrpc": "2.0", "id": req_id, "result": result}
        except Exception as exc:
            if req_id is _NO_ID:
                log.debug("jsonrpc: error in notification %s: %s", obj.get("method"), exc)
                return None
            return {"jsonrpc": "2.0", "id": req_id, "error": _error_obj(exc)}

    def dispatch(self, payload: Any, caller: Optional[str] = None) -> Union[Json, List[Json], None]:
        if isinstance(payload, list):
            if not payload:
                return {"jsonrpc": "2.0", "id": None, "error": JsonRpcError(INVALID_REQUEST, "empty batch").to_obj()}
            out = [self.dispatch_one(obj, caller) for obj in payload]
            return [r for r in out if r is not None]
        return self.dispatch_one(payload, caller)


def build_jsonrpc_router(dispatcher: JsonRpcDispatcher, *, path: str = "/rpc") -> APIRouter:
    """Return an APIRouter serving JSON-RPC POSTs at `path`."""
    router = APIRouter()

    @router.post(path)
    async def jsonrpc_http(request: Request) -> Response:
        raw = await request.body()
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            err = {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}
            return Response(content=json.dumps(err, separators=(",", ":")), status_code=400, media_type="application/json")
        result = dispatcher.dispatch(payload, request.headers.get(CALLER_HEADER))
        if result is None or result == []:
            return Response(status_code=204)
        return Response(content=json.dumps(result, separators=(",", ":")), media_type="application/json")

    return router


__all__ = ["JsonRpcDispatcher", "JsonRpcError", "build_jsonrpc_router"]
