from __future__ import annotations
"""
Marketplace notification events.

Each committed state-changing operation emits one or more of these for
external observers and indexers. They are observational only: nothing in the
engine reads them back. All events are pure dataclasses with JSON-serializable
fields.

Events:
  - ProviderRegistered:  a provider record was created.
  - JobSubmitted:        a client escrowed funds for a new job.
  - JobAssigned:         a provider claimed a Pending job.
  - JobCompleted:        the provider reported a result reference.
  - PaymentReleased:     escrow was split and paid to the provider.
  - AlgorithmRegistered: algorithm metadata was published.
  - JobCancelled:        the client cancelled a Pending job and was refunded.
  - JobDisputed:         the client froze settlement of a job.

`ts` is the ledger transaction timestamp (UNIX seconds).
"""


from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Union


class EventType(str, Enum):
    PROVIDER_REGISTERED = "ProviderRegistered"
    JOB_SUBMITTED = "JobSubmitted"
    JOB_ASSIGNED = "JobAssigned"
    JOB_COMPLETED = "JobCompleted"
    PAYMENT_RELEASED = "PaymentReleased"
    ALGORITHM_REGISTERED = "AlgorithmRegistered"
    JOB_CANCELLED = "JobCancelled"
    JOB_DISPUTED = "JobDisputed"


# ────────────────────────────────────────────────────────────────────────────────
# Event payloads
# ────────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProviderRegistered:
    ts: int
    provider: str
    name: str
    capacity: int
    etype: EventType = EventType.PROVIDER_REGISTERED


@dataclass(frozen=True)
class JobSubmitted:
    ts: int
    job_id: int
    client: str
    payment: int
    etype: EventType = EventType.JOB_SUBMITTED


@dataclass(frozen=True)
class JobAssigned:
    ts: int
    job_id: int
    provider: str
    etype: EventType = EventType.JOB_ASSIGNED


@dataclass(frozen=True)
class JobCompleted:
    ts: int
    job_id: int
    result_ref: str
    etype: EventType = EventType.JOB_COMPLETED


@dataclass(frozen=True)
class PaymentReleased:
    ts: int
    job_id: int
    provider: str
    amount: int
    platform_fee: int
    etype: EventType = EventType.PAYMENT_RELEASED


@dataclass(frozen=True)
class AlgorithmRegistered:
    ts: int
    ipfs_hash: str
    creator: str
    etype: EventType = EventType.ALGORITHM_REGISTERED


@dataclass(frozen=True)
class JobCancelled:
    ts: int
    job_id: int
    client: str
    refund: int
    fee: int
    etype: EventType = EventType.JOB_CANCELLED


@dataclass(frozen=True)
class JobDisputed:
    ts: int
    job_id: int
    client: str
    etype: EventType = EventType.JOB_DISPUTED


MarketEvent = Union[
    ProviderRegistered,
    JobSubmitted,
    JobAssigned,
    JobCompleted,
    PaymentReleased,
    AlgorithmRegistered,
    JobCancelled,
    JobDisputed,
]

_BY_TYPE = {
    EventType.PROVIDER_REGISTERED: ProviderRegistered,
    EventType.JOB_SUBMITTED: JobSubmitted,
    EventType.JOB_ASSIGNED: JobAssigned,
    EventType.JOB_COMPLETED: JobCompleted,
    EventType.PAYMENT_RELEASED: PaymentReleased,
    EventType.ALGORITHM_REGISTERED: AlgorithmRegistered,
    EventType.JOB_CANCELLED: JobCancelled,
    EventType.JOB_DISPUTED: JobDisputed,
}


def event_to_dict(ev: MarketEvent) -> Dict[str, Any]:
    d = asdict(ev)
    d["etype"] = ev.etype.value
    return d


def event_from_dict(d: Mapping[str, Any]) -> MarketEvent:
    etype = EventType(d["etype"])
    fields = {k: v for k, v in d.items() if k != "etype"}
    return _BY_TYPE[etype](**fields)  # type: ignore[arg-type]


__all__ = [
    "EventType",
    "ProviderRegistered",
    "JobSubmitted",
    "JobAssigned",
    "JobCompleted",
    "PaymentReleased",
    "AlgorithmRegistered",
    "JobCancelled",
    "JobDisputed",
    "MarketEvent",
    "event_to_dict",
    "event_from_dict",
]
