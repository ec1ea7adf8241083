from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class JobStatus(str, Enum):
    PENDING = "pending"
    EXECUTING = "executing"  # only observable inside the claim transaction
    COMPLETED = "completed"
    FAILED = "failed"
    DISPUTED = "disputed"


@dataclass(frozen=True)
class Job:
    """
    A compute job and its escrowed payment.

    `payment` is fixed at submission. `provider` and `payment_released` each
    change at most once; transitions produce a new record via `replace`.
    """

    job_id: int
    client: str
    algorithm_ref: str
    required_capacity: int
    payment: int
    submitted_at: int
    deadline: int
    status: JobStatus = JobStatus.PENDING
    provider: Optional[str] = None
    result_ref: Optional[str] = None
    completed_at: Optional[int] = None
    payment_released: bool = False

    def expired_at(self, now: int) -> bool:
        return now >= self.deadline

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Job":
        return Job(
            job_id=int(d["job_id"]),
            client=str(d["client"]),
            algorithm_ref=str(d["algorithm_ref"]),
            required_capacity=int(d["required_capacity"]),
            payment=int(d["payment"]),
            submitted_at=int(d["submitted_at"]),
            deadline=int(d["deadline"]),
            status=JobStatus(d.get("status", JobStatus.PENDING.value)),
            provider=d.get("provider"),
            result_ref=d.get("result_ref"),
            completed_at=int(d["completed_at"]) if d.get("completed_at") is not None else None,
            payment_released=bool(d.get("payment_released", False)),
        )


__all__ = ["Job", "JobStatus"]
