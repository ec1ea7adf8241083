from __future__ import annotations

"""
Transaction timestamps.

The ledger stamps every transaction with a timestamp that never decreases,
even if the underlying source steps backwards.
"""

import time
from typing import Optional


class SystemClock:
    """Wall-clock seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Settable clock for devnets and tests."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._t = int(start)

    def now(self) -> int:
        return self._t

    def set(self, t: int) -> None:
        self._t = int(t)

    def advance(self, seconds: int) -> int:
        self._t += int(seconds)
        return self._t


class MonotonicStamp:
    """Wraps a clock so successive stamps are non-decreasing."""

    def __init__(self, source: Optional[object] = None, *, high_water: int = 0) -> None:
        self._source = source or SystemClock()
        self._high = int(high_water)

    @property
    def high_water(self) -> int:
        return self._high

    def stamp(self) -> int:
        t = int(self._source.now())  # type: ignore[attr-defined]
        if t > self._high:
            self._high = t
        return self._high


__all__ = ["SystemClock", "ManualClock", "MonotonicStamp"]
