from __future__ import annotations
"""
qmarket - compute-job marketplace with escrow settlement.

This package matches compute-job requests with registered providers, holds
client funds in escrow, releases payment on completion, and tracks provider
reputation, cancellations and disputes. Submodules are lazily imported to keep
import time minimal.

Public surface (lazily loaded):
- config, errors, metrics, events
- ledger, registry, economics, engine, market
- rpc, cli
"""


from typing import List

from .version import __version__

__all__: List[str] = [
    "__version__",
    # lazily importable subpackages/modules
    "config",
    "errors",
    "metrics",
    "events",
    "ledger",
    "registry",
    "economics",
    "engine",
    "market",
    "rpc",
    "cli",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib


_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)
