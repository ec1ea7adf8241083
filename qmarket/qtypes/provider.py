from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class Provider:
    address: str
    name: str
    capacity: int  # qubits
    exec_time: int  # nominal execution time, seconds
    price: int  # per execution, smallest unit
    is_active: bool = True
    reputation: int = 100
    total_executions: int = 0
    registered_at: int = 0

    def can_run(self, required_capacity: int) -> bool:
        return self.capacity >= required_capacity

    def with_execution(self) -> "Provider":
        return replace(self, total_executions=self.total_executions + 1)

    def with_reputation(self, score: int) -> "Provider":
        return replace(self, reputation=score)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Provider":
        return Provider(
            address=str(d["address"]),
            name=str(d["name"]),
            capacity=int(d["capacity"]),
            exec_time=int(d["exec_time"]),
            price=int(d["price"]),
            is_active=bool(d.get("is_active", True)),
            reputation=int(d.get("reputation", 100)),
            total_executions=int(d.get("total_executions", 0)),
            registered_at=int(d.get("registered_at", 0)),
        )


__all__ = ["Provider"]
