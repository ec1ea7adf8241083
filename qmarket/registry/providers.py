from __future__ import annotations

"""
Provider registry: identity, capacity and reputation records.

A provider registers once per address. Reputation starts at the configured
initial score and only ever increases (capped); there is no deactivation or
penalty transition.
"""

import logging
from dataclasses import replace
from typing import List

from qmarket.errors import AlreadyRegistered, InvalidInput, NotFound
from qmarket.ledger.store import MarketStore
from qmarket.ledger.tx import TxContext
from qmarket.qtypes import is_blank
from qmarket.qtypes.events import ProviderRegistered
from qmarket.qtypes.provider import Provider

log = logging.getLogger(__name__)


class ProviderRegistry:
    def register(
        self,
        tx: TxContext,
        *,
        name: str,
        capacity: int,
        exec_time: int,
        price: int,
    ) -> Provider:
        if capacity <= 0:
            raise InvalidInput("capacity must be positive", field="capacity")
        if exec_time <= 0:
            raise InvalidInput("execution time must be positive", field="exec_time")
        if price <= 0:
            raise InvalidInput("price must be positive", field="price")
        if is_blank(name):
            raise InvalidInput("name must be non-empty", field="name")
        if tx.store.get_provider(tx.caller) is not None:
            raise AlreadyRegistered(
                "provider already registered", details={"provider": tx.caller}
            )

        prov = Provider(
            address=tx.caller,
            name=name,
            capacity=int(capacity),
            exec_time=int(exec_time),
            price=int(price),
            is_active=True,
            reputation=tx.config.reputation.initial,
            total_executions=0,
            registered_at=tx.timestamp,
        )
        tx.store.insert_provider(prov)
        tx.emit(ProviderRegistered(ts=tx.timestamp, provider=prov.address, name=prov.name, capacity=prov.capacity))
        log.info("registry: provider registered address=%s capacity=%d price=%d", prov.address, prov.capacity, prov.price)
        return prov

    # --- queries ---

    def get(self, store: MarketStore, address: str) -> Provider:
        prov = store.get_provider(address)
        if prov is None:
            raise NotFound("provider not found", kind="provider", key=address)
        return prov

    def is_registered(self, store: MarketStore, address: str) -> bool:
        return store.get_provider(address) is not None

    def available(self, store: MarketStore, min_capacity: int) -> List[Provider]:
        """Active providers with capacity >= `min_capacity`, in registration order."""
        out: List[Provider] = []
        for addr in store.active_providers:
            p = store.providers[addr]
            if p.is_active and p.capacity >= min_capacity:
                out.append(p)
        return out

    # --- engine-internal transitions ---

    def record_execution(self, tx: TxContext, address: str) -> Provider:
        p = self.get(tx.store, address).with_execution()
        tx.store.replace_provider(p)
        return p

    def bump_reputation(self, tx: TxContext, address: str, amount: int) -> Provider:
        """Raise reputation by `amount`, never above the configured maximum."""
        p = self.get(tx.store, address)
        cap = tx.config.reputation.maximum
        score = min(cap, p.reputation + max(0, amount))
        if score != p.reputation:
            p = p.with_reputation(score)
            tx.store.replace_provider(p)
        return p


__all__ = ["ProviderRegistry"]
