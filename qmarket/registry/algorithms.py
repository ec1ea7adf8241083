from __future__ import annotations

import logging

from qmarket.errors import AlreadyRegistered, InvalidInput, NotFound
from qmarket.ledger.store import MarketStore
from qmarket.ledger.tx import TxContext
from qmarket.qtypes import is_blank
from qmarket.qtypes.algorithm import Algorithm
from qmarket.qtypes.events import AlgorithmRegistered

log = logging.getLogger(__name__)


class AlgorithmRegistry:
    """Metadata for reusable algorithm artifacts, keyed by content hash."""

    def register(
        self,
        tx: TxContext,
        *,
        ipfs_hash: str,
        name: str,
        min_qubits: int,
        est_time: int,
        price: int,
        is_public: bool,
    ) -> Algorithm:
        if is_blank(ipfs_hash):
            raise InvalidInput("content reference must be non-empty", field="ipfs_hash")
        if is_blank(name):
            raise InvalidInput("name must be non-empty", field="name")
        if min_qubits <= 0:
            raise InvalidInput("minimum qubits must be positive", field="min_qubits")
        if tx.store.get_algorithm(ipfs_hash) is not None:
            raise AlreadyRegistered(
                "algorithm already registered", details={"ipfs_hash": ipfs_hash}
            )

        alg = Algorithm(
            creator=tx.caller,
            name=name,
            ipfs_hash=ipfs_hash,
            min_qubits=int(min_qubits),
            est_time=int(est_time),
            price=int(price),
            is_public=bool(is_public),
            usage_count=0,
        )
        tx.store.insert_algorithm(alg)
        tx.emit(AlgorithmRegistered(ts=tx.timestamp, ipfs_hash=ipfs_hash, creator=tx.caller))
        log.info("registry: algorithm registered ipfs_hash=%s creator=%s", ipfs_hash, tx.caller)
        return alg

    def get(self, store: MarketStore, ipfs_hash: str) -> Algorithm:
        alg = store.get_algorithm(ipfs_hash)
        if alg is None:
            raise NotFound("algorithm not found", kind="algorithm", key=ipfs_hash)
        return alg


__all__ = ["AlgorithmRegistry"]
