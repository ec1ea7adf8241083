from __future__ import annotations

"""
qmarket.rpc
-----------

Package marker and lightweight exports for the marketplace RPC surface.

This subpackage hosts:
  • JSON-RPC method implementations (`methods.make_methods`)
  • HTTP (FastAPI) route mounting for the same operations
  • WebSocket notifications of committed marketplace events
  • `app.create_app`, a ready-to-serve ASGI application
"""

from typing import Dict, Final

# Base path under which marketplace endpoints are mounted into the primary API.
RPC_PREFIX: Final[str] = "/market"

# Header carrying the authenticated caller identity on REST writes.
CALLER_HEADER: Final[str] = "X-Caller"

# Suggested OpenAPI tag used by route modules in this package.
MARKET_OPENAPI_TAG: Final[Dict[str, str]] = {
    "name": "market",
    "description": "Compute-job marketplace: providers, jobs, escrow settlement, algorithms.",
}

__all__ = [
    "RPC_PREFIX",
    "CALLER_HEADER",
    "MARKET_OPENAPI_TAG",
]
