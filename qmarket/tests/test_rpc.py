from __future__ import annotations

import concurrent.futures
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from qmarket.errors import InvalidInput, NotFound
from qmarket.rpc.app import create_app
from qmarket.rpc.methods import make_methods
from qmarket.rpc.mount import mount_market, register_jsonrpc
from qmarket.rpc.ws import _log_emit_failure

from . import ALGO, CLIENT, PROVIDER, RESULT, T0, mk_market


@pytest.fixture()
def mk():
    m, clock = mk_market()
    m.deposit(CLIENT, 1_000)
    return m, TestClient(create_app(m))


def _rpc(client: TestClient, method: str, params=None, *, caller: str | None = None, rid=1):
    headers = {"X-Caller": caller} if caller else {}
    body = {"jsonrpc": "2.0", "id": rid, "method": method, "params": params or {}}
    r = client.post("/rpc", json=body, headers=headers)
    assert r.status_code == 200
    return r.json()


def test_make_methods_exposes_the_operation_set():
    m, _ = mk_market()
    names = set(make_methods(m))
    assert {
        "market.registerProvider",
        "market.submitJob",
        "market.acceptAndExecuteJob",
        "market.registerAlgorithm",
        "market.disputeJob",
        "market.cancelJob",
        "market.getProvider",
        "market.getJob",
        "market.getAvailableProviders",
        "market.getClientJobs",
        "market.getProviderJobs",
        "market.getAlgorithm",
        "market.getBalance",
    } <= names


def test_methods_called_directly():
    m, _ = mk_market()
    m.deposit(CLIENT, 500)
    methods = make_methods(m)
    methods["market.registerProvider"](caller=PROVIDER, name="q", capacity="5", execTime=60, price=10)
    job = methods["market.submitJob"](caller=CLIENT, algorithmRef=ALGO, requiredCapacity=3, deadlineHours=1, value=100)
    s = methods["market.acceptAndExecuteJob"](caller=PROVIDER, jobId=job["job_id"], resultRef=RESULT)
    assert s["provider_amount"] == 97
    assert methods["market.getJob"](jobId=job["job_id"])["status"] == "completed"
    with pytest.raises(NotFound):
        methods["market.getJob"](jobId=99)


def test_rest_happy_path(mk):
    m, client = mk
    r = client.post(
        "/market/providers",
        json={"name": "qpu-5", "capacity": 5, "execTime": 60, "price": 10},
        headers={"X-Caller": PROVIDER},
    )
    assert r.status_code == 200, r.text
    assert r.json()["reputation"] == 100

    r = client.post(
        "/market/jobs",
        json={"algorithmRef": ALGO, "requiredCapacity": 3, "deadlineHours": 1, "value": 100},
        headers={"X-Caller": CLIENT},
    )
    assert r.status_code == 200, r.text
    job_id = r.json()["job_id"]
    assert r.json()["status"] == "pending"

    r = client.post(f"/market/jobs/{job_id}/execute", json={"resultRef": RESULT}, headers={"X-Caller": PROVIDER})
    assert r.status_code == 200, r.text
    assert (r.json()["provider_amount"], r.json()["platform_fee"]) == (97, 3)

    assert client.get(f"/market/jobs/{job_id}").json()["payment_released"] is True
    assert client.get(f"/market/clients/{CLIENT}/jobs").json() == [job_id]
    assert client.get(f"/market/providers/{PROVIDER}/jobs").json() == [job_id]
    assert client.get(f"/market/balances/{PROVIDER}").json() == {"address": PROVIDER, "balance": 97}
    assert [p["address"] for p in client.get("/market/providers", params={"minCapacity": 3}).json()] == [PROVIDER]
    assert client.get("/market/jobs", params={"status": "completed"}).json()["items"][0]["job_id"] == job_id


def test_rest_error_mapping(mk):
    m, client = mk
    r = client.get("/market/jobs/123")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "NOT_FOUND"

    r = client.post(
        "/market/providers",
        json={"name": "q", "capacity": 0, "execTime": 1, "price": 1},
        headers={"X-Caller": PROVIDER},
    )
    assert r.status_code == 400
    assert r.json()["detail"]["details"]["field"] == "capacity"

    r = client.post(
        "/market/jobs",
        json={"algorithmRef": ALGO, "requiredCapacity": 1, "deadlineHours": 1, "value": 5_000},
        headers={"X-Caller": CLIENT},
    )
    assert r.status_code == 402

    job = m.submit_job(CLIENT, algorithm_ref=ALGO, required_capacity=1, deadline_hours=1, value=10)
    r = client.post(f"/market/jobs/{job.job_id}/cancel", headers={"X-Caller": "mallory"})
    assert r.status_code == 403
    r = client.post(f"/market/jobs/{job.job_id}/dispute", headers={"X-Caller": CLIENT})
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "INVALID_STATE"

    r = client.get("/market/jobs", params={"status": "bogus"})
    assert r.status_code == 400


def test_rest_writes_require_caller_header(mk):
    _, client = mk
    r = client.post("/market/providers", json={"name": "q", "capacity": 1, "execTime": 1, "price": 1})
    assert r.status_code == 422


def test_jsonrpc_flow_and_errors(mk):
    m, client = mk
    out = _rpc(
        client,
        "market.registerProvider",
        {"name": "q", "capacity": 5, "execTime": 60, "price": 10},
        caller=PROVIDER,
    )
    assert out["result"]["address"] == PROVIDER

    out = _rpc(
        client,
        "market.submitJob",
        {"caller": CLIENT, "algorithmRef": ALGO, "requiredCapacity": 3, "deadlineHours": 1, "value": 100},
    )
    job_id = out["result"]["job_id"]

    out = _rpc(client, "market.cancelJob", {"jobId": job_id}, caller=CLIENT)
    assert out["result"]["refund"] == 95

    out = _rpc(client, "market.acceptAndExecuteJob", {"jobId": job_id, "resultRef": RESULT}, caller=PROVIDER)
    assert out["error"]["data"]["code"] == "NOT_AVAILABLE"
    assert out["error"]["code"] == -32004

    out = _rpc(client, "market.getJob", {"jobId": 404})
    assert out["error"]["data"]["code"] == "NOT_FOUND"

    out = _rpc(client, "market.nope")
    assert out["error"]["code"] == -32601

    out = _rpc(client, "market.getJob", {"bogus": 1})
    assert out["error"]["code"] == -32602


def test_jsonrpc_batch_and_notifications(mk):
    _, client = mk
    batch = [
        {"jsonrpc": "2.0", "id": 1, "method": "market.getBalance", "params": {"address": CLIENT}},
        {"jsonrpc": "2.0", "method": "market.getBalance", "params": {"address": CLIENT}},
        {"jsonrpc": "2.0", "id": 2, "method": "market.getClientJobs", "params": {"address": CLIENT}},
    ]
    r = client.post("/rpc", json=batch)
    assert r.status_code == 200
    out = r.json()
    assert [o["id"] for o in out] == [1, 2]
    assert out[0]["result"]["balance"] == 1_000
    assert out[1]["result"] == []

    r = client.post("/rpc", content=b"{not json")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == -32700


def test_metrics_and_health(mk):
    _, client = mk
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "qmarket_jobs_submitted_total" in r.text
    h = client.get("/healthz").json()
    assert h["ok"] is True and h["jobs"] == 0
    assert h["lastTs"] == T0


def test_websocket_receives_committed_events(mk):
    m, client = mk
    with client.websocket_connect("/market/ws?topics=market.jobSubmitted") as ws:
        ws.send_text("ping")
        assert ws.receive_json()["event"] == "pong"
        r = client.post(
            "/market/jobs",
            json={"algorithmRef": ALGO, "requiredCapacity": 1, "deadlineHours": 1, "value": 10},
            headers={"X-Caller": CLIENT},
        )
        assert r.status_code == 200
        msg = ws.receive_json()
    assert msg["event"] == "market.jobSubmitted"
    assert msg["data"]["job_id"] == r.json()["job_id"]
    assert msg["data"]["payment"] == 10


def test_mount_and_register_helpers():
    m, _ = mk_market()
    app = FastAPI()
    mount_market(app, m, prefix="/mk")
    paths = {getattr(r, "path", "") for r in app.routes}
    assert "/mk/jobs/{job_id}" in paths

    class Dispatcher:
        def __init__(self):
            self.seen = {}

        def register(self, name, fn):
            self.seen[name] = fn

    d = Dispatcher()
    register_jsonrpc(d, m)
    assert "market.getJob" in d.seen


def test_rest_register_algorithm(mk):
    _, client = mk
    body = {"ipfsHash": ALGO, "name": "grover", "minQubits": 4, "estTime": 30, "price": 7}
    r = client.post("/market/algorithms", json=body, headers={"X-Caller": CLIENT})
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "grover"
    assert client.get(f"/market/algorithms/{ALGO}").json()["ipfs_hash"] == ALGO

    r = client.post("/market/algorithms", json=body, headers={"X-Caller": CLIENT})
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "ALREADY_REGISTERED"


def test_methods_reject_fractional_integers():
    m, _ = mk_market()
    m.deposit(CLIENT, 500)
    methods = make_methods(m)
    with pytest.raises(InvalidInput) as ei:
        methods["market.submitJob"](
            caller=CLIENT, algorithmRef=ALGO, requiredCapacity=1, deadlineHours=1.9, value=100
        )
    assert ei.value.details["field"] == "deadlineHours"
    job = methods["market.submitJob"](
        caller=CLIENT, algorithmRef=ALGO, requiredCapacity=1, deadlineHours=2.0, value=100
    )
    assert job["deadline"] - job["submitted_at"] == 2 * 3600


def test_jsonrpc_array_params_are_invalid(mk):
    _, client = mk
    out = _rpc(client, "market.getBalance", [CLIENT])
    assert out["error"]["code"] == -32602


def test_failed_broadcast_is_logged(caplog):
    fut: concurrent.futures.Future = concurrent.futures.Future()
    fut.set_exception(RuntimeError("socket gone"))
    with caplog.at_level(logging.ERROR, logger="qmarket.rpc.ws"):
        _log_emit_failure("market.jobSubmitted", fut)
    assert "market.jobSubmitted" in caplog.text
    assert "socket gone" in caplog.text
