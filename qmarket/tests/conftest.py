from __future__ import annotations

import pytest

from qmarket.events import EventRecorder

from . import mk_funded_market, mk_market


@pytest.fixture()
def market():
    m, _ = mk_market()
    return m


@pytest.fixture()
def funded():
    """(market, clock) with a funded client and one registered provider."""
    return mk_funded_market()


@pytest.fixture()
def recorder(funded):
    m, _ = funded
    rec = EventRecorder()
    m.subscribe(rec)
    return rec


@pytest.fixture(autouse=True)
def _clean_qmarket_env(monkeypatch):
    for k in (
        "QMARKET_CONFIG_FILE",
        "QMARKET_PLATFORM_FEE_BPS",
        "QMARKET_CANCELLATION_FEE_BPS",
        "QMARKET_REPUTATION_INITIAL",
        "QMARKET_REPUTATION_MAX",
        "QMARKET_REPUTATION_TIMELY_BONUS",
        "QMARKET_ESCROW_ACCOUNT",
        "QMARKET_TREASURY_ACCOUNT",
        "QMARKET_SECONDS_PER_HOUR",
        "QMARKET_STATE",
    ):
        monkeypatch.delenv(k, raising=False)
