from __future__ import annotations

"""
Client-side exits from the happy path.

- cancel:  the client withdraws a Pending job; status -> FAILED and the
           payment minus the cancellation fee is refunded.
- dispute: the client freezes a Completed or Failed job whose payment has not
           been released; status -> DISPUTED. Nothing transitions out of
           DISPUTED, and settlement refuses disputed jobs.

Only the job's original client may do either. Guards are checked before any
money moves.
"""

import logging
from dataclasses import replace

from qmarket.economics.escrow import EscrowSettlement, Refund
from qmarket.errors import InvalidState, NotFound, Unauthorized
from qmarket.ledger.tx import TxContext
from qmarket.qtypes.events import JobCancelled, JobDisputed
from qmarket.qtypes.job import Job, JobStatus

log = logging.getLogger(__name__)

DISPUTABLE = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class DisputeAndCancellation:
    def __init__(self, escrow: EscrowSettlement) -> None:
        self.escrow = escrow

    def _own_job(self, tx: TxContext, job_id: int) -> Job:
        job = tx.store.get_job(job_id)
        if job is None:
            raise NotFound("job not found", kind="job", key=job_id)
        if job.client != tx.caller:
            raise Unauthorized("only the job's client may do this", caller=tx.caller)
        return job

    def cancel(self, tx: TxContext, job_id: int) -> Refund:
        job = self._own_job(tx, job_id)
        if job.status != JobStatus.PENDING:
            raise InvalidState("only pending jobs can be cancelled", job_id=job_id, status=job.status.value)

        tx.store.replace_job(replace(job, status=JobStatus.FAILED))
        refund = self.escrow.refund_cancellation(tx, job)
        tx.emit(JobCancelled(ts=tx.timestamp, job_id=job_id, client=job.client, refund=refund.refund, fee=refund.fee))
        log.info("disputes: job cancelled job_id=%d refund=%d", job_id, refund.refund)
        return refund

    def dispute(self, tx: TxContext, job_id: int) -> Job:
        job = self._own_job(tx, job_id)
        if job.status not in DISPUTABLE:
            raise InvalidState("job cannot be disputed in this state", job_id=job_id, status=job.status.value)
        if job.payment_released:
            raise InvalidState("payment already released", job_id=job_id, status=job.status.value)

        job = replace(job, status=JobStatus.DISPUTED)
        tx.store.replace_job(job)
        tx.emit(JobDisputed(ts=tx.timestamp, job_id=job_id, client=job.client))
        log.info("disputes: job disputed job_id=%d client=%s", job_id, job.client)
        return job


__all__ = ["DisputeAndCancellation", "DISPUTABLE"]
