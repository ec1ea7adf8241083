from __future__ import annotations

"""
Arena-style record store for the marketplace.

Primary records (providers, jobs, algorithms) are keyed by stable identifiers
and never deleted; a transition replaces a record with a new frozen value.
Secondary indices are append-only and hold identifiers only, never
back-references:

  client_jobs      address -> [job_id, ...]      (submission order)
  provider_jobs    address -> [job_id, ...]      (claim order)
  active_providers [address, ...]                (registration order)

The job sequence counter lives here too, so it is persisted and rolled back
together with the records it numbers.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from qmarket.qtypes.algorithm import Algorithm
from qmarket.qtypes.job import Job
from qmarket.qtypes.provider import Provider

FIRST_JOB_ID = 1


@dataclass
class StoreSnapshot:
    providers: Dict[str, Provider]
    jobs: Dict[int, Job]
    algorithms: Dict[str, Algorithm]
    client_jobs: Dict[str, List[int]]
    provider_jobs: Dict[str, List[int]]
    active_providers: List[str]
    next_job_id: int


@dataclass
class MarketStore:
    providers: Dict[str, Provider] = field(default_factory=dict)
    jobs: Dict[int, Job] = field(default_factory=dict)
    algorithms: Dict[str, Algorithm] = field(default_factory=dict)
    client_jobs: Dict[str, List[int]] = field(default_factory=dict)
    provider_jobs: Dict[str, List[int]] = field(default_factory=dict)
    active_providers: List[str] = field(default_factory=list)
    next_job_id: int = FIRST_JOB_ID

    # --- providers ---

    def get_provider(self, address: str) -> Optional[Provider]:
        return self.providers.get(address)

    def insert_provider(self, p: Provider) -> None:
        if p.address in self.providers:
            raise KeyError(f"provider {p.address!r} already stored")
        self.providers[p.address] = p
        if p.is_active:
            self.active_providers.append(p.address)

    def replace_provider(self, p: Provider) -> None:
        if p.address not in self.providers:
            raise KeyError(f"no provider {p.address!r}")
        self.providers[p.address] = p

    # --- jobs ---

    def allocate_job_id(self) -> int:
        jid = self.next_job_id
        self.next_job_id += 1
        return jid

    def get_job(self, job_id: int) -> Optional[Job]:
        return self.jobs.get(job_id)

    def insert_job(self, job: Job) -> None:
        if job.job_id in self.jobs:
            raise KeyError(f"job {job.job_id} already stored")
        self.jobs[job.job_id] = job
        self.client_jobs.setdefault(job.client, []).append(job.job_id)

    def replace_job(self, job: Job) -> None:
        if job.job_id not in self.jobs:
            raise KeyError(f"no job {job.job_id}")
        self.jobs[job.job_id] = job

    def link_provider_job(self, address: str, job_id: int) -> None:
        self.provider_jobs.setdefault(address, []).append(job_id)

    # --- algorithms ---

    def get_algorithm(self, ipfs_hash: str) -> Optional[Algorithm]:
        return self.algorithms.get(ipfs_hash)

    def insert_algorithm(self, alg: Algorithm) -> None:
        if alg.ipfs_hash in self.algorithms:
            raise KeyError(f"algorithm {alg.ipfs_hash!r} already stored")
        self.algorithms[alg.ipfs_hash] = alg

    # --- snapshot / restore ---

    def snapshot(self) -> StoreSnapshot:
        # Records are frozen; copying the containers is enough.
        return StoreSnapshot(
            providers=dict(self.providers),
            jobs=dict(self.jobs),
            algorithms=dict(self.algorithms),
            client_jobs={k: list(v) for k, v in self.client_jobs.items()},
            provider_jobs={k: list(v) for k, v in self.provider_jobs.items()},
            active_providers=list(self.active_providers),
            next_job_id=self.next_job_id,
        )

    def restore(self, snap: StoreSnapshot) -> None:
        self.providers = dict(snap.providers)
        self.jobs = dict(snap.jobs)
        self.algorithms = dict(snap.algorithms)
        self.client_jobs = {k: list(v) for k, v in snap.client_jobs.items()}
        self.provider_jobs = {k: list(v) for k, v in snap.provider_jobs.items()}
        self.active_providers = list(snap.active_providers)
        self.next_job_id = snap.next_job_id

    # --- load/save ---

    def dump(self) -> Dict:
        return {
            "providers": [p.to_dict() for p in self.providers.values()],
            "jobs": [self.jobs[k].to_dict() for k in sorted(self.jobs)],
            "algorithms": [a.to_dict() for a in self.algorithms.values()],
            "client_jobs": {k: list(v) for k, v in self.client_jobs.items()},
            "provider_jobs": {k: list(v) for k, v in self.provider_jobs.items()},
            "active_providers": list(self.active_providers),
            "next_job_id": self.next_job_id,
        }

    @classmethod
    def load(cls, data: Dict) -> "MarketStore":
        st = cls()
        for d in data.get("providers") or ():
            p = Provider.from_dict(d)
            st.providers[p.address] = p
        for d in data.get("jobs") or ():
            j = Job.from_dict(d)
            st.jobs[j.job_id] = j
        for d in data.get("algorithms") or ():
            a = Algorithm.from_dict(d)
            st.algorithms[a.ipfs_hash] = a
        st.client_jobs = {k: [int(x) for x in v] for k, v in (data.get("client_jobs") or {}).items()}
        st.provider_jobs = {k: [int(x) for x in v] for k, v in (data.get("provider_jobs") or {}).items()}
        st.active_providers = [str(a) for a in data.get("active_providers") or ()]
        st.next_job_id = int(data.get("next_job_id", FIRST_JOB_ID))
        if st.jobs and st.next_job_id <= max(st.jobs):
            raise ValueError(
                f"next_job_id={st.next_job_id} would reuse an existing job id (max={max(st.jobs)})"
            )
        return st


__all__ = ["MarketStore", "StoreSnapshot", "FIRST_JOB_ID"]
