"""
Marketplace economics: fee splits and escrow settlement.

- split:  integer basis-point fee math (platform fee, cancellation fee)
- escrow: single-fire payout to providers and cancellation refunds
"""

from .escrow import EscrowSettlement, Refund, Settlement
from .split import (
    DEFAULT_FEES,
    FeePolicy,
    FeeRule,
    cancellation_split,
    settlement_split,
)

__all__ = [
    "EscrowSettlement",
    "Settlement",
    "Refund",
    "DEFAULT_FEES",
    "FeePolicy",
    "FeeRule",
    "cancellation_split",
    "settlement_split",
]
