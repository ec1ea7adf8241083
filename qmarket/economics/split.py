from __future__ import annotations
"""
Split rules: divide a job's escrowed payment between the provider and the
platform, and compute the refund for a cancelled job.

Percentages are basis points (bps, 1/100 of a percent). Fees are truncated by
integer division and the remainder always goes to the payee (provider on
settlement, client on cancellation), so no value is created or destroyed:

    fee + payee_amount == payment

Example
-------
>>> settlement_split(100, DEFAULT_FEES)
(3, 97)
>>> cancellation_split(100, DEFAULT_FEES)
(5, 95)
"""


from dataclasses import dataclass
from typing import Final, Tuple

from ..errors import InvalidInput

Amount = int


@dataclass(frozen=True)
class FeeRule:
    """A single fee in basis points (0..10_000)."""
    bps: int

    def __post_init__(self) -> None:
        if not isinstance(self.bps, int):
            raise InvalidInput(f"fee bps must be int, got {type(self.bps)!r}", field="bps")
        if not (0 <= self.bps <= 10_000):
            raise InvalidInput(f"fee bps must be in [0, 10_000], got {self.bps}", field="bps")

    def apply(self, total: Amount) -> Tuple[Amount, Amount]:
        """Return (fee, remainder) for `total`."""
        if not isinstance(total, int) or total < 0:
            raise InvalidInput(f"total must be a non-negative int, got {total!r}", field="total")
        fee = (total * self.bps) // 10_000
        rest = total - fee
        assert fee + rest == total, "split invariant violated"
        return fee, rest


@dataclass(frozen=True)
class FeePolicy:
    platform: FeeRule
    cancellation: FeeRule

    @classmethod
    def from_schedule(cls, schedule) -> "FeePolicy":
        """Build from a `qmarket.config.FeeSchedule`-like object."""
        return cls(
            platform=FeeRule(int(schedule.platform_fee_bps)),
            cancellation=FeeRule(int(schedule.cancellation_fee_bps)),
        )


# 3% platform fee on settlement, 5% retained on cancellation.
DEFAULT_FEES: Final[FeePolicy] = FeePolicy(platform=FeeRule(300), cancellation=FeeRule(500))


def settlement_split(payment: Amount, policy: FeePolicy = DEFAULT_FEES) -> Tuple[Amount, Amount]:
    """(platform_fee, provider_amount) for a completed job's payment."""
    return policy.platform.apply(payment)


def cancellation_split(payment: Amount, policy: FeePolicy = DEFAULT_FEES) -> Tuple[Amount, Amount]:
    """(retained_fee, client_refund) for a cancelled job's payment."""
    return policy.cancellation.apply(payment)


__all__ = [
    "Amount",
    "FeeRule",
    "FeePolicy",
    "DEFAULT_FEES",
    "settlement_split",
    "cancellation_split",
]
