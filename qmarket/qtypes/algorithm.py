from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class Algorithm:
    """
    Metadata for a reusable algorithm artifact, keyed by its content hash.

    `usage_count` is carried for interface compatibility; no job transition
    increments it.
    """

    creator: str
    name: str
    ipfs_hash: str
    min_qubits: int
    est_time: int
    price: int
    is_public: bool
    usage_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Algorithm":
        return Algorithm(
            creator=str(d["creator"]),
            name=str(d["name"]),
            ipfs_hash=str(d["ipfs_hash"]),
            min_qubits=int(d["min_qubits"]),
            est_time=int(d["est_time"]),
            price=int(d["price"]),
            is_public=bool(d["is_public"]),
            usage_count=int(d.get("usage_count", 0)),
        )


__all__ = ["Algorithm"]
