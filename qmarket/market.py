from __future__ import annotations

"""
qmarket.market
--------------

The public surface clients and providers call. Each state-changing method is
one atomic ledger transaction on behalf of `caller`; queries read committed
state.

Usage:
    from qmarket.market import Marketplace
    m = Marketplace()
    m.deposit("client", 1_000)
    m.register_provider("prov", name="qpu-5", capacity=5, exec_time=60, price=10)
    job = m.submit_job("client", algorithm_ref="Qm...", required_capacity=3,
                       deadline_hours=1, value=100)
    m.accept_and_execute_job("prov", job_id=job.job_id, result_ref="Qr...")
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from qmarket import metrics
from qmarket.config import MarketConfig
from qmarket.economics.escrow import EscrowSettlement, Refund, Settlement
from qmarket.engine.disputes import DisputeAndCancellation
from qmarket.engine.lifecycle import JobLifecycleEngine
from qmarket.errors import MarketError
from qmarket.events import Handler
from qmarket.ledger.tx import Ledger
from qmarket.qtypes.algorithm import Algorithm
from qmarket.qtypes.job import Job, JobStatus
from qmarket.qtypes.provider import Provider
from qmarket.registry.algorithms import AlgorithmRegistry
from qmarket.registry.providers import ProviderRegistry

log = logging.getLogger(__name__)


class Marketplace:
    def __init__(
        self,
        ledger: Optional[Ledger] = None,
        *,
        config: Optional[MarketConfig] = None,
        clock: Optional[object] = None,
        instrument: bool = True,
    ) -> None:
        self.ledger = ledger or Ledger(config, clock=clock)
        self.providers = ProviderRegistry()
        self.algorithms = AlgorithmRegistry()
        self.escrow = EscrowSettlement(self.providers)
        self.engine = JobLifecycleEngine(self.providers, self.escrow)
        self.disputes = DisputeAndCancellation(self.escrow)
        if instrument:
            self.ledger.bus.subscribe(metrics.observe_event)

    @property
    def config(self) -> MarketConfig:
        return self.ledger.config

    @contextmanager
    def _rejections(self, op: str) -> Iterator[None]:
        try:
            yield
        except MarketError as e:
            metrics.record_rejection(op, e.code)
            log.debug("market: %s rejected: %s", op, e)
            raise

    # ────────────────────────────────────────────────────────────────────────
    # State-changing operations
    # ────────────────────────────────────────────────────────────────────────

    def register_provider(self, caller: str, *, name: str, capacity: int, exec_time: int, price: int) -> Provider:
        with self._rejections("register_provider"):
            with self.ledger.transaction(caller, op="register_provider") as tx:
                return self.providers.register(tx, name=name, capacity=capacity, exec_time=exec_time, price=price)

    def submit_job(
        self,
        caller: str,
        *,
        algorithm_ref: str,
        required_capacity: int,
        deadline_hours: int,
        value: int,
    ) -> Job:
        with self._rejections("submit_job"):
            with self.ledger.transaction(caller, value=value, op="submit_job") as tx:
                return self.engine.submit(
                    tx,
                    algorithm_ref=algorithm_ref,
                    required_capacity=required_capacity,
                    deadline_hours=deadline_hours,
                )

    def accept_and_execute_job(self, caller: str, *, job_id: int, result_ref: str) -> Settlement:
        with self._rejections("accept_and_execute_job"):
            with self.ledger.transaction(caller, op="accept_and_execute_job") as tx:
                return self.engine.claim_and_complete(tx, job_id=job_id, result_ref=result_ref)

    def register_algorithm(
        self,
        caller: str,
        *,
        ipfs_hash: str,
        name: str,
        min_qubits: int,
        est_time: int,
        price: int,
        is_public: bool,
    ) -> Algorithm:
        with self._rejections("register_algorithm"):
            with self.ledger.transaction(caller, op="register_algorithm") as tx:
                return self.algorithms.register(
                    tx,
                    ipfs_hash=ipfs_hash,
                    name=name,
                    min_qubits=min_qubits,
                    est_time=est_time,
                    price=price,
                    is_public=is_public,
                )

    def cancel_job(self, caller: str, *, job_id: int) -> Refund:
        with self._rejections("cancel_job"):
            with self.ledger.transaction(caller, op="cancel_job") as tx:
                return self.disputes.cancel(tx, job_id)

    def dispute_job(self, caller: str, *, job_id: int) -> Job:
        with self._rejections("dispute_job"):
            with self.ledger.transaction(caller, op="dispute_job") as tx:
                return self.disputes.dispute(tx, job_id)

    # ────────────────────────────────────────────────────────────────────────
    # Queries
    # ────────────────────────────────────────────────────────────────────────

    def get_provider(self, address: str) -> Provider:
        with self.ledger.view() as store:
            return self.providers.get(store, address)

    def get_job(self, job_id: int) -> Job:
        with self.ledger.view() as store:
            return self.engine.get(store, job_id)

    def get_available_providers(self, min_capacity: int) -> List[Provider]:
        with self.ledger.view() as store:
            return self.providers.available(store, min_capacity)

    def get_client_jobs(self, client: str) -> List[int]:
        with self.ledger.view() as store:
            return self.engine.client_jobs(store, client)

    def get_provider_jobs(self, provider: str) -> List[int]:
        with self.ledger.view() as store:
            return self.engine.provider_jobs(store, provider)

    def get_algorithm(self, ipfs_hash: str) -> Algorithm:
        with self.ledger.view() as store:
            return self.algorithms.get(store, ipfs_hash)

    def list_jobs(
        self,
        *,
        status: Optional[JobStatus] = None,
        client: Optional[str] = None,
        provider: Optional[str] = None,
        offset: int = 0,
        limit: int = 100,
    ) -> List[Job]:
        with self.ledger.view() as store:
            return self.engine.list_jobs(
                store, status=status, client=client, provider=provider, offset=offset, limit=limit
            )

    # ────────────────────────────────────────────────────────────────────────
    # Ledger passthroughs
    # ────────────────────────────────────────────────────────────────────────

    def balance_of(self, address: str) -> int:
        return self.ledger.balance_of(address)

    def deposit(self, address: str, amount: int) -> int:
        """Devnet faucet: mint `amount` to `address`; returns the new balance."""
        self.ledger.mint(address, amount)
        return self.ledger.balance_of(address)

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        return self.ledger.bus.subscribe(handler)


__all__ = ["Marketplace"]
