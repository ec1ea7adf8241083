from __future__ import annotations
# qmarket/errors.py
"""
Error types for the compute marketplace. Every guard violation surfaces one of
these; they are lightweight, serializable, and safe to surface over RPC/logs.

Exports:
- MarketError (base)
- InvalidInput, Unauthorized, NotFound
- InvalidState, NotAvailable, NotSettleable
- CapacityInsufficient, DeadlineExpired, ProviderInactive
- AlreadyRegistered, AlreadySettled
- LedgerError, InsufficientFunds, TransferRejected
"""


from typing import Any, Dict, Mapping, Optional
import json


class MarketError(Exception):
    """Base class for marketplace domain errors."""

    code: str = "MARKET_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            # Keep this compact and stable for logs
            packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"), default=str)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class InvalidInput(MarketError):
    """Malformed, zero or empty argument."""
    code = "INVALID_INPUT"

    def __init__(
        self,
        message: str = "invalid input",
        *,
        field: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if field is not None:
            d.setdefault("field", field)
        super().__init__(message, details=d)


class Unauthorized(MarketError):
    """Caller lacks the role or identity required for the target record."""
    code = "UNAUTHORIZED"

    def __init__(
        self,
        message: str = "caller not authorized",
        *,
        caller: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if caller is not None:
            d.setdefault("caller", caller)
        super().__init__(message, details=d)


class NotFound(MarketError):
    """Referenced job, provider or algorithm does not exist."""
    code = "NOT_FOUND"

    def __init__(
        self,
        message: str = "record not found",
        *,
        kind: Optional[str] = None,
        key: Any = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if kind is not None:
            d.setdefault("kind", kind)
        if key is not None:
            d.setdefault("key", key)
        super().__init__(message, details=d)


class InvalidState(MarketError):
    """Operation is not valid for the record's current lifecycle state."""
    code = "INVALID_STATE"

    def __init__(
        self,
        message: str = "invalid state for operation",
        *,
        job_id: Optional[int] = None,
        status: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if job_id is not None:
            d.setdefault("job_id", int(job_id))
        if status is not None:
            d.setdefault("status", status)
        super().__init__(message, details=d)


class NotAvailable(InvalidState):
    """A provider tried to claim a job that is no longer Pending."""
    code = "NOT_AVAILABLE"


class NotSettleable(InvalidState):
    """Settlement was requested for a job that is not Completed."""
    code = "NOT_SETTLEABLE"


class CapacityInsufficient(MarketError):
    """Provider capacity is below the job's requirement."""
    code = "CAPACITY_INSUFFICIENT"

    def __init__(
        self,
        *,
        required: int,
        available: int,
        message: str = "provider capacity insufficient",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"required": int(required), "available": int(available)})
        super().__init__(message, details=d)


class DeadlineExpired(MarketError):
    """The job's execution deadline has passed."""
    code = "DEADLINE_EXPIRED"

    def __init__(
        self,
        *,
        job_id: int,
        deadline: int,
        now: int,
        message: str = "execution deadline expired",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"job_id": int(job_id), "deadline": int(deadline), "now": int(now)})
        super().__init__(message, details=d)


class ProviderInactive(MarketError):
    """Provider is registered but not active."""
    code = "PROVIDER_INACTIVE"


class AlreadyRegistered(MarketError):
    """A provider address or algorithm reference is already taken."""
    code = "ALREADY_REGISTERED"


class AlreadySettled(MarketError):
    """Payment for the job was already released."""
    code = "ALREADY_SETTLED"

    def __init__(
        self,
        *,
        job_id: int,
        message: str = "payment already released",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d["job_id"] = int(job_id)
        super().__init__(message, details=d)


# ────────────────────────────────────────────────────────────────────────────────
# Ledger substrate
# ────────────────────────────────────────────────────────────────────────────────


class LedgerError(MarketError):
    """Base error for the ledger substrate (balances, transfers)."""
    code = "LEDGER_ERROR"


class InsufficientFunds(LedgerError):
    """Account lacks the balance for a debit or transfer."""
    code = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        *,
        account: str,
        required: int,
        available: int,
        message: str = "insufficient funds",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"account": account, "required": int(required), "available": int(available)})
        super().__init__(message, details=d)


class TransferRejected(LedgerError):
    """The recipient refused an incoming transfer."""
    code = "TRANSFER_REJECTED"


__all__ = [
    "MarketError",
    "InvalidInput",
    "Unauthorized",
    "NotFound",
    "InvalidState",
    "NotAvailable",
    "NotSettleable",
    "CapacityInsufficient",
    "DeadlineExpired",
    "ProviderInactive",
    "AlreadyRegistered",
    "AlreadySettled",
    "LedgerError",
    "InsufficientFunds",
    "TransferRejected",
]
