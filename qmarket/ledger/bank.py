from __future__ import annotations

"""
Native-currency balances for the reference ledger
-------------------------------------------------

This module keeps a deterministic balance sheet keyed by address and an
append-only journal of every movement. Amounts are integer base units (no
floats). Every operation checks:
  • Non-negativity of amounts
  • Sufficient balance before a debit/transfer
  • Recipient acceptance (an address may install a receive hook that refuses
    funds, e.g. a contract without a payable fallback)

A transfer either applies both legs or raises; it never leaves one side
applied. Atomicity across several transfers is the caller's concern: the
transaction layer (`qmarket.ledger.tx`) snapshots the bank and restores it
when an operation fails.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, Iterable, List, Literal, Optional, Tuple

from qmarket.errors import InsufficientFunds, LedgerError, TransferRejected

Amount = int
OpName = Literal["mint", "transfer"]

# (sender, amount, memo) -> accept?
ReceiveHook = Callable[[str, int, str], bool]

log = logging.getLogger(__name__)


def _ensure_nonneg(x: int, name: str) -> None:
    if not isinstance(x, int) or x < 0:
        raise LedgerError(f"{name} must be a non-negative int, got {x!r}")


@dataclass(frozen=True)
class JournalEntry:
    seq: int
    op: OpName
    source: Optional[str]
    target: str
    amount: Amount
    ts: int
    memo: str = ""
    meta: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)

    @staticmethod
    def from_dict(d: Dict) -> "JournalEntry":
        return JournalEntry(
            seq=int(d["seq"]),
            op=d["op"],
            source=d.get("source"),
            target=str(d["target"]),
            amount=int(d["amount"]),
            ts=int(d["ts"]),
            memo=d.get("memo", ""),
            meta=dict(d.get("meta") or {}),
        )


class Bank:
    """
    In-memory balance sheet. Not thread-safe on its own; the ledger serializes
    access under its transaction lock.
    """

    def __init__(self) -> None:
        self._balances: Dict[str, Amount] = {}
        self._journal: List[JournalEntry] = []
        self._hooks: Dict[str, ReceiveHook] = {}

    # --- introspection ---

    def balance_of(self, address: str) -> Amount:
        return self._balances.get(address, 0)

    def journal(self) -> Tuple[JournalEntry, ...]:
        return tuple(self._journal)

    def total_supply(self) -> Amount:
        return sum(self._balances.values())

    # --- receive hooks ---

    def set_receive_hook(self, address: str, hook: Optional[ReceiveHook]) -> None:
        """Install (or clear with None) a hook deciding whether `address` accepts funds."""
        if hook is None:
            self._hooks.pop(address, None)
        else:
            self._hooks[address] = hook

    # --- mutations ---

    def mint(self, address: str, amount: Amount, *, ts: int, memo: str = "mint") -> JournalEntry:
        """Create funds out of thin air (devnet faucet)."""
        _ensure_nonneg(amount, "amount")
        self._balances[address] = self.balance_of(address) + amount
        return self._record("mint", None, address, amount, ts, memo)

    def transfer(
        self,
        source: str,
        target: str,
        amount: Amount,
        *,
        ts: int,
        memo: str = "",
    ) -> JournalEntry:
        _ensure_nonneg(amount, "amount")
        have = self.balance_of(source)
        if have < amount:
            raise InsufficientFunds(account=source, required=amount, available=have)
        hook = self._hooks.get(target)
        if hook is not None and not hook(source, amount, memo):
            log.warning("bank: %s rejected transfer of %d from %s (%s)", target, amount, source, memo)
            raise TransferRejected(
                "recipient rejected transfer",
                details={"source": source, "target": target, "amount": amount, "memo": memo},
            )
        self._balances[source] = have - amount
        self._balances[target] = self.balance_of(target) + amount
        return self._record("transfer", source, target, amount, ts, memo)

    def _record(
        self, op: OpName, source: Optional[str], target: str, amount: Amount, ts: int, memo: str
    ) -> JournalEntry:
        je = JournalEntry(
            seq=len(self._journal) + 1,
            op=op,
            source=source,
            target=target,
            amount=amount,
            ts=ts,
            memo=memo,
        )
        self._journal.append(je)
        return je

    # --- snapshot / restore (transaction rollback) ---

    def snapshot(self) -> Tuple[Dict[str, Amount], int]:
        return dict(self._balances), len(self._journal)

    def restore(self, snap: Tuple[Dict[str, Amount], int]) -> None:
        balances, journal_len = snap
        self._balances = dict(balances)
        del self._journal[journal_len:]

    # --- load/save ---

    def dump(self) -> Dict:
        return {
            "balances": {k: v for k, v in sorted(self._balances.items())},
            "journal": [je.to_dict() for je in self._journal],
        }

    @classmethod
    def load(cls, data: Dict) -> "Bank":
        bank = cls()
        for k, v in (data.get("balances") or {}).items():
            _ensure_nonneg(int(v), f"balance[{k}]")
            bank._balances[k] = int(v)
        bank._journal = [JournalEntry.from_dict(d) for d in data.get("journal") or ()]
        return bank

    def entries_for(self, address: str) -> Iterable[JournalEntry]:
        return tuple(je for je in self._journal if address in (je.source, je.target))


__all__ = ["Bank", "JournalEntry", "ReceiveHook"]
