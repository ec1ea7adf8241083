from __future__ import annotations
"""
Escrow settlement: release held client funds to a provider, or refund a
client on cancellation.

Funds attached to `submit_job` sit in the ledger's escrow account. This module
moves them out exactly once per job:

- settle(tx, job_id)              -> provider gets payment minus platform fee,
                                     platform fee goes to the treasury account,
                                     provider reputation bumped if on time
- refund_cancellation(tx, job)    -> client gets payment minus cancellation
                                     fee; the fee stays in escrow (retained)

Design notes
------------
- Pure integer math (see `split.py`); no floats.
- Runs inside the caller's ledger transaction. A rejected transfer raises and
  the whole transaction (status change included) is rolled back.
- Single-fire: a released job raises `AlreadySettled`; a job that is not
  Completed (Disputed included) raises `NotSettleable`.
"""


import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from qmarket import metrics
from qmarket.errors import AlreadySettled, InvalidState, NotFound, NotSettleable
from qmarket.ledger.tx import TxContext
from qmarket.qtypes.events import PaymentReleased
from qmarket.qtypes.job import Job, JobStatus
from qmarket.registry.providers import ProviderRegistry

from .split import FeePolicy, cancellation_split, settlement_split

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settlement:
    job_id: int
    provider: str
    payment: int
    platform_fee: int
    provider_amount: int
    timely: bool
    reputation_after: int


@dataclass(frozen=True)
class Refund:
    job_id: int
    client: str
    payment: int
    fee: int
    refund: int


class EscrowSettlement:
    def __init__(self, providers: ProviderRegistry, policy: Optional[FeePolicy] = None) -> None:
        self.providers = providers
        self._policy = policy

    def policy(self, tx: TxContext) -> FeePolicy:
        return self._policy or FeePolicy.from_schedule(tx.config.fees)

    def split(self, tx: TxContext, payment: int) -> Tuple[int, int]:
        """(platform_fee, provider_amount) for `payment` under the active policy."""
        return settlement_split(payment, self.policy(tx))

    # ---- Release to provider ---------------------------------------------

    def settle(self, tx: TxContext, job_id: int) -> Settlement:
        """
        Split and pay out a Completed, unreleased job. Marks it released
        before any funds move; rollback undoes both if a transfer fails.
        """
        with metrics.time_settlement():
            job = tx.store.get_job(job_id)
            if job is None:
                raise NotFound("job not found", kind="job", key=job_id)
            if job.payment_released:
                raise AlreadySettled(job_id=job_id)
            if job.status != JobStatus.COMPLETED:
                raise NotSettleable(
                    "job is not settleable", job_id=job_id, status=job.status.value
                )
            if job.provider is None:
                raise InvalidState("completed job has no provider", job_id=job_id)

            platform_fee, provider_amount = self.split(tx, job.payment)

            tx.store.replace_job(replace(job, payment_released=True))
            tx.transfer(
                tx.ledger.escrow_account, job.provider, provider_amount, memo=f"job:{job_id}:payout"
            )
            if platform_fee:
                tx.transfer(
                    tx.ledger.escrow_account,
                    tx.ledger.treasury_account,
                    platform_fee,
                    memo=f"job:{job_id}:platform_fee",
                )

            timely = job.completed_at is not None and job.completed_at <= job.deadline
            if timely:
                prov = self.providers.bump_reputation(
                    tx, job.provider, tx.config.reputation.timely_bonus
                )
            else:
                prov = self.providers.get(tx.store, job.provider)

            tx.emit(
                PaymentReleased(
                    ts=tx.timestamp,
                    job_id=job_id,
                    provider=job.provider,
                    amount=provider_amount,
                    platform_fee=platform_fee,
                )
            )
            log.info(
                "escrow: released job_id=%d provider=%s amount=%d fee=%d timely=%s",
                job_id, job.provider, provider_amount, platform_fee, timely,
            )
            return Settlement(
                job_id=job_id,
                provider=job.provider,
                payment=job.payment,
                platform_fee=platform_fee,
                provider_amount=provider_amount,
                timely=timely,
                reputation_after=prov.reputation,
            )

    # ---- Refund to client ------------------------------------------------

    def refund_cancellation(self, tx: TxContext, job: Job) -> Refund:
        """Pay the client back minus the cancellation fee, which stays in escrow."""
        fee, refund = cancellation_split(job.payment, self.policy(tx))
        tx.transfer(tx.ledger.escrow_account, job.client, refund, memo=f"job:{job.job_id}:refund")
        log.info("escrow: refunded job_id=%d client=%s refund=%d fee=%d", job.job_id, job.client, refund, fee)
        return Refund(job_id=job.job_id, client=job.client, payment=job.payment, fee=fee, refund=refund)


__all__ = ["EscrowSettlement", "Settlement", "Refund"]
