"""
Reference ledger substrate: caller-authenticated, serialized, all-or-nothing
transactions over an arena record store and a native-currency bank.
"""

from .bank import Bank, JournalEntry
from .clock import ManualClock, MonotonicStamp, SystemClock
from .store import MarketStore
from .tx import Ledger, TxContext

__all__ = [
    "Bank",
    "JournalEntry",
    "ManualClock",
    "MonotonicStamp",
    "SystemClock",
    "MarketStore",
    "Ledger",
    "TxContext",
]
