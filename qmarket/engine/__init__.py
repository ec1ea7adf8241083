"""Job lifecycle state machine and the client-side cancel/dispute paths."""

from .disputes import DISPUTABLE, DisputeAndCancellation
from .lifecycle import JobLifecycleEngine

__all__ = ["JobLifecycleEngine", "DisputeAndCancellation", "DISPUTABLE"]
