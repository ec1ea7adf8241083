from __future__ import annotations
"""
qmarket test suite package.

Tiny helpers shared across the tests. Every helper builds a fresh
`Marketplace` on a `ManualClock`, so deadlines are driven explicitly.
"""

from typing import Tuple

from qmarket.config import MarketConfig
from qmarket.ledger.clock import ManualClock
from qmarket.market import Marketplace

# Canonical start time for tests (2023-11-14T22:13:20Z).
T0: int = 1_700_000_000

CLIENT = "client-1"
PROVIDER = "prov-1"
ALGO = "QmAlgorithmHash"
RESULT = "QmResultHash"


def mk_market(config: MarketConfig | None = None, *, start: int = T0) -> Tuple[Marketplace, ManualClock]:
    clock = ManualClock(start)
    return Marketplace(config=config, clock=clock, instrument=False), clock


def mk_funded_market(balance: int = 1_000) -> Tuple[Marketplace, ManualClock]:
    """Market with CLIENT funded and PROVIDER registered (capacity=5, price=10)."""
    m, clock = mk_market()
    m.deposit(CLIENT, balance)
    m.register_provider(PROVIDER, name="qpu-5", capacity=5, exec_time=60, price=10)
    return m, clock


__all__ = ["T0", "CLIENT", "PROVIDER", "ALGO", "RESULT", "mk_market", "mk_funded_market"]
