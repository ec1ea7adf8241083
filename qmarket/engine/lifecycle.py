from __future__ import annotations

"""
Job lifecycle engine.

States
------
    PENDING --claim_and_complete--> EXECUTING --> COMPLETED --dispute--> DISPUTED
       |                                                                   ^
       +--cancel--> FAILED -----------------dispute------------------------+

Claim and completion are one atomic transition: a registered, active provider
with enough capacity claims a Pending job before its deadline and reports a
result reference in the same call. The job passes through EXECUTING inside
that transaction only, then settlement runs immediately.

Every guard reads the latest committed state; a failed guard raises before
anything is written, and a failure after a write (e.g. a rejected payout
transfer) rolls the whole transaction back.
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional

from qmarket.economics.escrow import EscrowSettlement, Settlement
from qmarket.errors import (
    CapacityInsufficient,
    DeadlineExpired,
    InvalidInput,
    NotAvailable,
    NotFound,
    ProviderInactive,
    Unauthorized,
)
from qmarket.ledger.store import MarketStore
from qmarket.ledger.tx import TxContext
from qmarket.qtypes import is_blank
from qmarket.qtypes.events import JobAssigned, JobCompleted, JobSubmitted
from qmarket.qtypes.job import Job, JobStatus
from qmarket.registry.providers import ProviderRegistry

log = logging.getLogger(__name__)


class JobLifecycleEngine:
    def __init__(self, providers: ProviderRegistry, escrow: EscrowSettlement) -> None:
        self.providers = providers
        self.escrow = escrow

    # --- transitions ---

    def submit(
        self,
        tx: TxContext,
        *,
        algorithm_ref: str,
        required_capacity: int,
        deadline_hours: int,
    ) -> Job:
        """Create a Pending job escrowing `tx.value`."""
        if required_capacity <= 0:
            raise InvalidInput("required capacity must be positive", field="required_capacity")
        if deadline_hours <= 0:
            raise InvalidInput("deadline must be positive", field="deadline_hours")
        if tx.value <= 0:
            raise InvalidInput("payment must be attached", field="value")
        if is_blank(algorithm_ref):
            raise InvalidInput("algorithm reference must be non-empty", field="algorithm_ref")

        job = Job(
            job_id=tx.store.allocate_job_id(),
            client=tx.caller,
            algorithm_ref=algorithm_ref,
            required_capacity=int(required_capacity),
            payment=tx.value,
            submitted_at=tx.timestamp,
            deadline=tx.timestamp + int(deadline_hours) * tx.config.ledger.seconds_per_hour,
            status=JobStatus.PENDING,
        )
        tx.store.insert_job(job)
        tx.emit(JobSubmitted(ts=tx.timestamp, job_id=job.job_id, client=job.client, payment=job.payment))
        log.info(
            "engine: job submitted job_id=%d client=%s payment=%d deadline=%d",
            job.job_id, job.client, job.payment, job.deadline,
        )
        return job

    def claim_and_complete(self, tx: TxContext, *, job_id: int, result_ref: str) -> Settlement:
        """Assign, complete and settle a Pending job in one step."""
        prov = tx.store.get_provider(tx.caller)
        if prov is None:
            raise Unauthorized("caller is not a registered provider", caller=tx.caller)
        job = tx.store.get_job(job_id)
        if job is None:
            raise NotFound("job not found", kind="job", key=job_id)
        if job.status != JobStatus.PENDING:
            raise NotAvailable("job is not available", job_id=job_id, status=job.status.value)
        if not prov.can_run(job.required_capacity):
            raise CapacityInsufficient(required=job.required_capacity, available=prov.capacity)
        if job.expired_at(tx.timestamp):
            raise DeadlineExpired(job_id=job_id, deadline=job.deadline, now=tx.timestamp)
        if not prov.is_active:
            raise ProviderInactive("provider is not active", details={"provider": prov.address})
        if is_blank(result_ref):
            raise InvalidInput("result reference must be non-empty", field="result_ref")

        job = replace(job, provider=prov.address, status=JobStatus.EXECUTING)
        tx.store.replace_job(job)
        tx.store.link_provider_job(prov.address, job_id)
        tx.emit(JobAssigned(ts=tx.timestamp, job_id=job_id, provider=prov.address))

        job = replace(job, result_ref=result_ref, status=JobStatus.COMPLETED, completed_at=tx.timestamp)
        tx.store.replace_job(job)
        self.providers.record_execution(tx, prov.address)
        tx.emit(JobCompleted(ts=tx.timestamp, job_id=job_id, result_ref=result_ref))
        log.info("engine: job completed job_id=%d provider=%s", job_id, prov.address)

        return self.escrow.settle(tx, job_id)

    # --- queries ---

    def get(self, store: MarketStore, job_id: int) -> Job:
        job = store.get_job(job_id)
        if job is None:
            raise NotFound("job not found", kind="job", key=job_id)
        return job

    def client_jobs(self, store: MarketStore, client: str) -> List[int]:
        return list(store.client_jobs.get(client, ()))

    def provider_jobs(self, store: MarketStore, provider: str) -> List[int]:
        return list(store.provider_jobs.get(provider, ()))

    def list_jobs(
        self,
        store: MarketStore,
        *,
        status: Optional[JobStatus] = None,
        client: Optional[str] = None,
        provider: Optional[str] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> List[Job]:
        """Jobs in id order, optionally filtered; paginated by offset/limit."""
        ids: Iterable[int]
        if client is not None:
            ids = store.client_jobs.get(client, ())
        elif provider is not None:
            ids = store.provider_jobs.get(provider, ())
        else:
            ids = sorted(store.jobs)
        out: List[Job] = []
        for jid in ids:
            j = store.jobs[jid]
            if status is not None and j.status != status:
                continue
            if provider is not None and j.provider != provider:
                continue
            out.append(j)
        return out[offset: offset + limit]


__all__ = ["JobLifecycleEngine"]
