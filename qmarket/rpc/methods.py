"""
qmarket.rpc.methods
-------------------

JSON-RPC style method implementations for the compute marketplace.

Exposed methods (bind via `make_methods`):
  • market.registerProvider      • market.getProvider
  • market.submitJob             • market.getJob
  • market.acceptAndExecuteJob   • market.getAvailableProviders
  • market.registerAlgorithm     • market.getClientJobs
  • market.disputeJob            • market.getProviderJobs
  • market.cancelJob             • market.getAlgorithm
  • market.listJobs              • market.getBalance

Write methods take a `caller` parameter: the identity the transport has
authenticated. Every callable returns plain JSON-serializable structures and
raises `MarketError` subclasses on rejection; `error_status` and
`jsonrpc_error_code` map those to HTTP and JSON-RPC codes.

Usage:
    from qmarket.rpc.methods import make_methods
    methods = make_methods(market)
    methods["market.getJob"](jobId=1)
"""

from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Header, HTTPException, Query
from pydantic import BaseModel, Field

from qmarket.errors import InvalidInput, MarketError
from qmarket.market import Marketplace
from qmarket.qtypes.job import JobStatus

# ---- Error mapping ----------------------------------------------------------

_HTTP_STATUS: Dict[str, int] = {
    "INVALID_INPUT": 400,
    "INSUFFICIENT_FUNDS": 402,
    "UNAUTHORIZED": 403,
    "NOT_FOUND": 404,
}

# JSON-RPC reserves -32000..-32099 for server errors.
_JSONRPC_CODE: Dict[str, int] = {
    "INVALID_INPUT": -32602,
    "UNAUTHORIZED": -32001,
    "NOT_FOUND": -32002,
    "INVALID_STATE": -32003,
    "NOT_AVAILABLE": -32004,
    "NOT_SETTLEABLE": -32005,
    "CAPACITY_INSUFFICIENT": -32006,
    "DEADLINE_EXPIRED": -32007,
    "PROVIDER_INACTIVE": -32008,
    "ALREADY_REGISTERED": -32009,
    "ALREADY_SETTLED": -32010,
    "INSUFFICIENT_FUNDS": -32011,
    "TRANSFER_REJECTED": -32012,
}


def error_status(e: MarketError) -> int:
    """HTTP status for a rejected operation; state conflicts map to 409."""
    return _HTTP_STATUS.get(e.code, 409)


def jsonrpc_error_code(e: MarketError) -> int:
    return _JSONRPC_CODE.get(e.code, -32000)


# ---- Helpers ---------------------------------------------------------------

def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise InvalidInput(f"invalid {name}: must be an integer", field=name)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidInput(f"invalid {name}: must be an integer", field=name) from e


def _as_nonneg(value: Any, name: str) -> int:
    iv = _as_int(value, name)
    if iv < 0:
        raise InvalidInput(f"invalid {name}: must be a non-negative integer", field=name)
    return iv


def _require(value: Any, name: str) -> str:
    if value is None or value == "":
        raise InvalidInput(f"{name} is required", field=name)
    return str(value)


def _status(value: Optional[str]) -> Optional[JobStatus]:
    if value is None:
        return None
    try:
        return JobStatus(value)
    except ValueError as e:
        allowed = ", ".join(s.value for s in JobStatus)
        raise InvalidInput(f"invalid status '{value}', allowed: {allowed}", field="status") from e


# ---- JSON-RPC method factory ----------------------------------------------

def make_methods(market: Marketplace) -> Dict[str, Callable[..., Any]]:
    """
    Build a mapping of JSON-RPC method name -> callable.
    """

    def register_provider(*, caller: str, name: str, capacity: Any, execTime: Any, price: Any) -> Dict[str, Any]:
        p = market.register_provider(
            _require(caller, "caller"),
            name=name,
            capacity=_as_int(capacity, "capacity"),
            exec_time=_as_int(execTime, "execTime"),
            price=_as_int(price, "price"),
        )
        return p.to_dict()

    def submit_job(
        *, caller: str, algorithmRef: str, requiredCapacity: Any, deadlineHours: Any, value: Any
    ) -> Dict[str, Any]:
        j = market.submit_job(
            _require(caller, "caller"),
            algorithm_ref=algorithmRef,
            required_capacity=_as_int(requiredCapacity, "requiredCapacity"),
            deadline_hours=_as_int(deadlineHours, "deadlineHours"),
            value=_as_nonneg(value, "value"),
        )
        return j.to_dict()

    def accept_and_execute_job(*, caller: str, jobId: Any, resultRef: str) -> Dict[str, Any]:
        s = market.accept_and_execute_job(
            _require(caller, "caller"), job_id=_as_int(jobId, "jobId"), result_ref=resultRef
        )
        return asdict(s)

    def register_algorithm(
        *,
        caller: str,
        ipfsHash: str,
        name: str,
        minQubits: Any,
        estTime: Any,
        price: Any,
        isPublic: bool = True,
    ) -> Dict[str, Any]:
        a = market.register_algorithm(
            _require(caller, "caller"),
            ipfs_hash=ipfsHash,
            name=name,
            min_qubits=_as_int(minQubits, "minQubits"),
            est_time=_as_int(estTime, "estTime"),
            price=_as_int(price, "price"),
            is_public=bool(isPublic),
        )
        return a.to_dict()

    def dispute_job(*, caller: str, jobId: Any) -> Dict[str, Any]:
        j = market.dispute_job(_require(caller, "caller"), job_id=_as_int(jobId, "jobId"))
        return j.to_dict()

    def cancel_job(*, caller: str, jobId: Any) -> Dict[str, Any]:
        r = market.cancel_job(_require(caller, "caller"), job_id=_as_int(jobId, "jobId"))
        return asdict(r)

    def get_provider(*, address: str) -> Dict[str, Any]:
        return market.get_provider(_require(address, "address")).to_dict()

    def get_job(*, jobId: Any) -> Dict[str, Any]:
        return market.get_job(_as_int(jobId, "jobId")).to_dict()

    def get_available_providers(*, minCapacity: Any = 0) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in market.get_available_providers(_as_int(minCapacity, "minCapacity"))]

    def get_client_jobs(*, address: str) -> List[int]:
        return market.get_client_jobs(_require(address, "address"))

    def get_provider_jobs(*, address: str) -> List[int]:
        return market.get_provider_jobs(_require(address, "address"))

    def get_algorithm(*, ipfsHash: str) -> Dict[str, Any]:
        return market.get_algorithm(_require(ipfsHash, "ipfsHash")).to_dict()

    def list_jobs(
        *,
        status: Optional[str] = None,
        client: Optional[str] = None,
        provider: Optional[str] = None,
        offset: Any = 0,
        limit: Any = 100,
    ) -> Dict[str, Any]:
        off = _as_nonneg(offset, "offset")
        lim = _as_nonneg(limit, "limit")
        items = [
            j.to_dict()
            for j in market.list_jobs(
                status=_status(status), client=client, provider=provider, offset=off, limit=lim
            )
        ]
        return {"items": items, "nextOffset": off + len(items)}

    def get_balance(*, address: str) -> Dict[str, Any]:
        addr = _require(address, "address")
        return {"address": addr, "balance": market.balance_of(addr)}

    # Map JSON-RPC names → callables
    return {
        "market.registerProvider": register_provider,
        "market.submitJob": submit_job,
        "market.acceptAndExecuteJob": accept_and_execute_job,
        "market.registerAlgorithm": register_algorithm,
        "market.disputeJob": dispute_job,
        "market.cancelJob": cancel_job,
        "market.getProvider": get_provider,
        "market.getJob": get_job,
        "market.getAvailableProviders": get_available_providers,
        "market.getClientJobs": get_client_jobs,
        "market.getProviderJobs": get_provider_jobs,
        "market.getAlgorithm": get_algorithm,
        "market.listJobs": list_jobs,
        "market.getBalance": get_balance,
    }


# ---- REST adapter (FastAPI) ------------------------------------------------

class ProviderIn(BaseModel):
    name: str
    capacity: int
    execTime: int
    price: int


class JobIn(BaseModel):
    algorithmRef: str
    requiredCapacity: int
    deadlineHours: int
    value: int = Field(ge=0)


class ResultIn(BaseModel):
    resultRef: str


class AlgorithmIn(BaseModel):
    ipfsHash: str
    name: str
    minQubits: int
    estTime: int
    price: int
    isPublic: bool = True


def build_rest_router(market: Marketplace) -> APIRouter:
    """
    Return a FastAPI APIRouter exposing the marketplace over REST.
    Writes read the caller identity from the `X-Caller` header.
    Mount path suggestion: f"{RPC_PREFIX}" (import from qmarket.rpc).
    """
    methods = make_methods(market)
    router = APIRouter()

    def call(method: str, /, **kwargs: Any) -> Any:
        try:
            return methods[method](**kwargs)
        except MarketError as e:
            raise HTTPException(status_code=error_status(e), detail=e.to_dict()) from e

    @router.post("/providers")
    def http_register_provider(body: ProviderIn, x_caller: str = Header(...)):
        return call("market.registerProvider", caller=x_caller, **body.model_dump())

    @router.get("/providers")
    def http_available_providers(minCapacity: int = Query(0)):
        return call("market.getAvailableProviders", minCapacity=minCapacity)

    @router.get("/providers/{address}")
    def http_get_provider(address: str):
        return call("market.getProvider", address=address)

    @router.get("/providers/{address}/jobs")
    def http_provider_jobs(address: str):
        return call("market.getProviderJobs", address=address)

    @router.get("/clients/{address}/jobs")
    def http_client_jobs(address: str):
        return call("market.getClientJobs", address=address)

    @router.post("/jobs")
    def http_submit_job(body: JobIn, x_caller: str = Header(...)):
        return call("market.submitJob", caller=x_caller, **body.model_dump())

    @router.get("/jobs")
    def http_list_jobs(
        status: Optional[str] = None,
        client: Optional[str] = None,
        provider: Optional[str] = None,
        offset: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=500),
    ):
        return call(
            "market.listJobs", status=status, client=client, provider=provider, offset=offset, limit=limit
        )

    @router.get("/jobs/{job_id}")
    def http_get_job(job_id: int):
        return call("market.getJob", jobId=job_id)

    @router.post("/jobs/{job_id}/execute")
    def http_execute_job(job_id: int, body: ResultIn, x_caller: str = Header(...)):
        return call("market.acceptAndExecuteJob", caller=x_caller, jobId=job_id, resultRef=body.resultRef)

    @router.post("/jobs/{job_id}/cancel")
    def http_cancel_job(job_id: int, x_caller: str = Header(...)):
        return call("market.cancelJob", caller=x_caller, jobId=job_id)

    @router.post("/jobs/{job_id}/dispute")
    def http_dispute_job(job_id: int, x_caller: str = Header(...)):
        return call("market.disputeJob", caller=x_caller, jobId=job_id)

    @router.post("/algorithms")
    def http_register_algorithm(body: AlgorithmIn, x_caller: str = Header(...)):
        return call("market.registerAlgorithm", caller=x_caller, **body.model_dump())

    @router.get("/algorithms/{ipfs_hash}")
    def http_get_algorithm(ipfs_hash: str):
        return call("market.getAlgorithm", ipfsHash=ipfs_hash)

    @router.get("/balances/{address}")
    def http_get_balance(address: str):
        return call("market.getBalance", address=address)

    return router


__all__ = [
    "ProviderIn",
    "JobIn",
    "ResultIn",
    "AlgorithmIn",
    "error_status",
    "jsonrpc_error_code",
    "make_methods",
    "build_rest_router",
]
