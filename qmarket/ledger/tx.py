from __future__ import annotations

"""
Serialized, all-or-nothing transactions over the marketplace state.

`Ledger.transaction(caller, value=...)` is the only way state changes. It:

1. refuses the escrow and treasury accounts as callers,
2. acquires the process-wide lock (no two operations interleave),
3. stamps a non-decreasing timestamp,
4. snapshots the record store and the bank,
5. moves any attached `value` from the caller into the escrow account,
6. runs the operation body,
7. on any exception restores both snapshots, drops buffered events and
   re-raises; otherwise publishes the buffered events in order.

Guards inside the body always read the latest committed state because the
lock is held from snapshot to commit.

Usage:
    ledger = Ledger()
    with ledger.transaction("alice", value=100) as tx:
        job_id = tx.store.allocate_job_id()
        ...
        tx.emit(JobSubmitted(ts=tx.timestamp, ...))
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, Iterator, List, Optional

from qmarket.config import MarketConfig
from qmarket.errors import InvalidInput, Unauthorized
from qmarket.events import EventBus
from qmarket.qtypes.events import MarketEvent

from .bank import Bank, JournalEntry
from .clock import MonotonicStamp
from .store import MarketStore

log = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


@dataclass
class TxContext:
    """Everything an operation may touch while its transaction is open."""
    ledger: "Ledger"
    caller: str
    value: int
    timestamp: int
    events: List[MarketEvent] = field(default_factory=list)

    @property
    def store(self) -> MarketStore:
        return self.ledger.store

    @property
    def bank(self) -> Bank:
        return self.ledger.bank

    @property
    def config(self) -> MarketConfig:
        return self.ledger.config

    def emit(self, ev: MarketEvent) -> None:
        self.events.append(ev)

    def transfer(self, source: str, target: str, amount: int, *, memo: str = "") -> JournalEntry:
        return self.bank.transfer(source, target, amount, ts=self.timestamp, memo=memo)


class Ledger:
    def __init__(
        self,
        config: Optional[MarketConfig] = None,
        *,
        clock: Optional[object] = None,
        bus: Optional[EventBus] = None,
        store: Optional[MarketStore] = None,
        bank: Optional[Bank] = None,
        high_water: int = 0,
    ) -> None:
        self.config = config or MarketConfig()
        self.store = store or MarketStore()
        self.bank = bank or Bank()
        self.bus = bus or EventBus()
        self._stamp = MonotonicStamp(clock, high_water=high_water)
        self._lock = RLock()
        self.tx_count = 0

    @property
    def escrow_account(self) -> str:
        return self.config.ledger.escrow_account

    @property
    def treasury_account(self) -> str:
        return self.config.ledger.treasury_account

    def now(self) -> int:
        """Latest transaction timestamp (does not advance the stamp)."""
        with self._lock:
            return self._stamp.high_water

    # --- transactions ---

    @contextmanager
    def transaction(self, caller: str, *, value: int = 0, op: str = "tx") -> Iterator[TxContext]:
        if not caller:
            raise InvalidInput("caller identity is required", field="caller")
        if caller in (self.escrow_account, self.treasury_account):
            raise Unauthorized("system accounts cannot act as callers", caller=caller)
        if not isinstance(value, int) or value < 0:
            raise InvalidInput("attached value must be a non-negative int", field="value")

        with self._lock:
            ts = self._stamp.stamp()
            store_snap = self.store.snapshot()
            bank_snap = self.bank.snapshot()
            ctx = TxContext(ledger=self, caller=caller, value=value, timestamp=ts)
            try:
                if value:
                    ctx.transfer(caller, self.escrow_account, value, memo=f"{op}:attach")
                yield ctx
            except BaseException as e:
                self.store.restore(store_snap)
                self.bank.restore(bank_snap)
                log.debug("tx: rolled back op=%s caller=%s ts=%d: %s", op, caller, ts, e)
                raise
            self.tx_count += 1
            log.debug("tx: committed op=%s caller=%s ts=%d events=%d", op, caller, ts, len(ctx.events))
            self.bus.publish(ctx.events)

    @contextmanager
    def view(self) -> Iterator[MarketStore]:
        """Read committed state under the lock (no snapshot, no stamp)."""
        with self._lock:
            yield self.store

    # --- devnet funding ---

    def mint(self, address: str, amount: int, *, memo: str = "faucet") -> JournalEntry:
        if not address:
            raise InvalidInput("address is required", field="address")
        with self._lock:
            return self.bank.mint(address, amount, ts=self._stamp.stamp(), memo=memo)

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self.bank.balance_of(address)

    # --- load/save ---

    def dump(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "version": SNAPSHOT_VERSION,
                "clock": {"high_water": self._stamp.high_water},
                "store": self.store.dump(),
                "bank": self.bank.dump(),
            }

    @classmethod
    def load(
        cls,
        data: Dict[str, Any],
        config: Optional[MarketConfig] = None,
        *,
        clock: Optional[object] = None,
        bus: Optional[EventBus] = None,
    ) -> "Ledger":
        version = int(data.get("version", SNAPSHOT_VERSION))
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported ledger snapshot version {version}")
        return cls(
            config,
            clock=clock,
            bus=bus,
            store=MarketStore.load(data.get("store") or {}),
            bank=Bank.load(data.get("bank") or {}),
            high_water=int((data.get("clock") or {}).get("high_water", 0)),
        )


__all__ = ["Ledger", "TxContext", "SNAPSHOT_VERSION"]
