from __future__ import annotations

import json

import pytest

from qmarket import config as cfgmod
from qmarket.errors import (
    CapacityInsufficient,
    InvalidState,
    MarketError,
    NotAvailable,
    NotFound,
    NotSettleable,
)


def test_defaults():
    cfg = cfgmod.MarketConfig()
    cfg.validate()
    assert cfg.fees.platform_fee_bps == 300
    assert cfg.fees.cancellation_fee_bps == 500
    assert (cfg.reputation.initial, cfg.reputation.maximum, cfg.reputation.timely_bonus) == (100, 200, 1)
    assert cfg.ledger.seconds_per_hour == 3600


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("QMARKET_PLATFORM_FEE_BPS", "1_000")
    monkeypatch.setenv("QMARKET_TREASURY_ACCOUNT", "dao")
    cfg = cfgmod.load()
    assert cfg.fees.platform_fee_bps == 1000
    assert cfg.ledger.treasury_account == "dao"
    assert cfg.fees.cancellation_fee_bps == 500


def test_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("QMARKET_SECONDS_PER_HOUR", "soon")
    with pytest.raises(ValueError):
        cfgmod.load()


def test_file_then_env_precedence(tmp_path, monkeypatch):
    p = tmp_path / "market.yaml"
    p.write_text("fees:\n  platform_fee_bps: 250\nreputation:\n  maximum: 150\n", encoding="utf-8")
    monkeypatch.setenv("QMARKET_CONFIG_FILE", str(p))
    monkeypatch.setenv("QMARKET_REPUTATION_MAX", "175")
    cfg = cfgmod.load()
    assert cfg.fees.platform_fee_bps == 250
    assert cfg.reputation.maximum == 175


def test_json_file(tmp_path):
    p = tmp_path / "market.json"
    p.write_text(json.dumps({"ledger": {"seconds_per_hour": 60}}), encoding="utf-8")
    assert cfgmod.from_file(p).ledger.seconds_per_hour == 60


def test_validation_errors():
    with pytest.raises(ValueError):
        cfgmod.FeeSchedule(platform_fee_bps=20_000).validate()
    with pytest.raises(ValueError):
        cfgmod.ReputationPolicy(initial=50, maximum=10).validate()
    with pytest.raises(ValueError):
        cfgmod.LedgerConfig(escrow_account="x", treasury_account="x").validate()


def test_pretty_is_json():
    assert json.loads(cfgmod.pretty(cfgmod.MarketConfig()))["fees"]["platform_fee_bps"] == 300


def test_error_hierarchy_and_payloads():
    assert issubclass(NotAvailable, InvalidState)
    assert issubclass(NotSettleable, InvalidState)
    e = CapacityInsufficient(required=5, available=2)
    assert isinstance(e, MarketError)
    assert e.to_dict() == {
        "code": "CAPACITY_INSUFFICIENT",
        "message": "provider capacity insufficient",
        "details": {"required": 5, "available": 2},
    }
    assert str(NotFound("job not found", kind="job", key=3)).startswith("NOT_FOUND: job not found")
