from __future__ import annotations

"""
Lightweight shared types for the compute marketplace.

These are intentionally minimal so they can be imported from both runtime
code and type-checkers without importing heavier submodules.

Conventions
-----------
- Addresses are opaque strings issued by the ledger (caller identities).
- Monetary values are ints in the ledger's smallest unit.
- Timestamps are UNIX seconds.
"""


from typing import NewType

from .algorithm import Algorithm
from .job import Job, JobStatus
from .provider import Provider

# ────────────────────────────────────────────────────────────────────────────────
# Identifiers & primitives
# ────────────────────────────────────────────────────────────────────────────────

Address = NewType("Address", str)  # caller identity / account key
JobId = NewType("JobId", int)  # monotonically assigned, never reused
ContentRef = NewType("ContentRef", str)  # opaque content hash (algorithm code, results)

Amount = NewType("Amount", int)  # smallest currency unit
Timestamp = NewType("Timestamp", int)  # UNIX seconds


def is_blank(s: str | None) -> bool:
    """Return True iff `s` is None or contains only whitespace."""
    return s is None or not str(s).strip()


__all__ = [
    # ids
    "Address",
    "JobId",
    "ContentRef",
    # primitives
    "Amount",
    "Timestamp",
    # records
    "Provider",
    "Job",
    "JobStatus",
    "Algorithm",
    # helpers
    "is_blank",
]
