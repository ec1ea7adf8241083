from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from qmarket.cli.main import app

from . import ALGO, CLIENT, PROVIDER, RESULT

runner = CliRunner()


@pytest.fixture()
def state(tmp_path):
    return str(tmp_path / "state.json")


def _run(state: str, *args: str):
    return runner.invoke(app, ["--state", state, *args])


def _json(state: str, *args: str):
    r = _run(state, *args, "--json")
    assert r.exit_code == 0, r.output
    return json.loads(r.stdout)


def test_full_flow_persists_between_invocations(state):
    assert _json(state, "deposit", "--to", CLIENT, "--amount", "1000")["balance"] == 1000
    p = _json(
        state, "register-provider", "--from", PROVIDER, "--name", "qpu-5",
        "--capacity", "5", "--exec-time", "60", "--price", "10",
    )
    assert p["reputation"] == 100

    job = _json(
        state, "submit-job", "--from", CLIENT, "--algorithm", ALGO,
        "--capacity", "3", "--hours", "1", "--value", "100",
    )
    assert job["job_id"] == 1 and job["status"] == "pending"

    s = _json(state, "accept-job", "--from", PROVIDER, "--job", "1", "--result", RESULT)
    assert (s["provider_amount"], s["platform_fee"], s["reputation_after"]) == (97, 3, 101)

    assert _json(state, "job", "1")["status"] == "completed"
    assert _json(state, "balance", PROVIDER)["balance"] == 97
    assert [p["address"] for p in _json(state, "providers", "--min-capacity", "3")] == [PROVIDER]
    assert [j["job_id"] for j in _json(state, "jobs", "--client", CLIENT)] == [1]


def test_cancel_and_dispute(state):
    _run(state, "deposit", "--to", CLIENT, "--amount", "500")
    _run(state, "submit-job", "--from", CLIENT, "--algorithm", ALGO, "--capacity", "1", "--hours", "2", "--value", "100")

    r = _json(state, "cancel-job", "--from", CLIENT, "--job", "1")
    assert (r["refund"], r["fee"]) == (95, 5)
    d = _json(state, "dispute-job", "--from", CLIENT, "--job", "1")
    assert d["status"] == "disputed"


def test_rejection_exits_with_code_and_keeps_state(state):
    _run(state, "deposit", "--to", CLIENT, "--amount", "50")
    r = _run(state, "submit-job", "--from", CLIENT, "--algorithm", ALGO, "--capacity", "1", "--hours", "1", "--value", "100")
    assert r.exit_code == 1
    assert "INSUFFICIENT_FUNDS" in r.output
    assert _json(state, "balance", CLIENT)["balance"] == 50

    r = _run(state, "job", "7")
    assert r.exit_code == 1
    assert "NOT_FOUND" in r.output


def test_algorithm_commands(state):
    a = _json(
        state, "register-algorithm", "--from", CLIENT, "--hash", ALGO, "--name", "grover",
        "--min-qubits", "4", "--est-time", "30", "--price", "7", "--private",
    )
    assert a["is_public"] is False
    assert _json(state, "algorithm", ALGO)["name"] == "grover"


def test_human_output_and_unknown_status(state):
    r = _run(state, "providers")
    assert r.exit_code == 0
    assert "(no providers)" in r.stdout

    r = _run(state, "jobs", "--status", "bogus")
    assert r.exit_code == 2


def test_config_command_prints_effective_config(state, monkeypatch):
    monkeypatch.setenv("QMARKET_PLATFORM_FEE_BPS", "450")
    r = _run(state, "config")
    assert r.exit_code == 0
    assert json.loads(r.stdout)["fees"]["platform_fee_bps"] == 450
