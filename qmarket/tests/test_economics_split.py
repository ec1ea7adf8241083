from __future__ import annotations

import pytest

from qmarket.config import FeeSchedule, MarketConfig
from qmarket.economics.split import DEFAULT_FEES, FeePolicy, FeeRule, cancellation_split, settlement_split
from qmarket.errors import InvalidInput

from . import ALGO, CLIENT, PROVIDER, RESULT, mk_market


def test_default_splits():
    assert settlement_split(100) == (3, 97)
    assert cancellation_split(100) == (5, 95)


@pytest.mark.parametrize("payment", [1, 33, 34, 99, 101, 12_345, 10**18 + 7])
def test_splits_conserve_value_and_round_fee_down(payment):
    fee, rest = settlement_split(payment, DEFAULT_FEES)
    assert fee + rest == payment
    assert fee == payment * 300 // 10_000
    cfee, refund = cancellation_split(payment, DEFAULT_FEES)
    assert cfee + refund == payment
    assert cfee == payment * 500 // 10_000


def test_fee_rule_bounds():
    with pytest.raises(InvalidInput):
        FeeRule(10_001)
    with pytest.raises(InvalidInput):
        FeeRule(-1)
    with pytest.raises(InvalidInput):
        FeeRule(100).apply(-5)
    assert FeeRule(10_000).apply(7) == (7, 0)


def test_policy_from_schedule():
    p = FeePolicy.from_schedule(FeeSchedule(platform_fee_bps=1_000, cancellation_fee_bps=0))
    assert settlement_split(100, p) == (10, 90)
    assert cancellation_split(100, p) == (0, 100)


def test_configured_fees_drive_settlement():
    cfg = MarketConfig(fees=FeeSchedule(platform_fee_bps=1_000, cancellation_fee_bps=2_000))
    m, _ = mk_market(cfg)
    m.deposit(CLIENT, 1_000)
    m.register_provider(PROVIDER, name="q", capacity=5, exec_time=1, price=1)
    a = m.submit_job(CLIENT, algorithm_ref=ALGO, required_capacity=1, deadline_hours=1, value=200)
    b = m.submit_job(CLIENT, algorithm_ref=ALGO, required_capacity=1, deadline_hours=1, value=200)

    s = m.accept_and_execute_job(PROVIDER, job_id=a.job_id, result_ref=RESULT)
    r = m.cancel_job(CLIENT, job_id=b.job_id)

    assert (s.platform_fee, s.provider_amount) == (20, 180)
    assert (r.fee, r.refund) == (40, 160)


def test_money_is_conserved_across_a_session():
    m, _ = mk_market()
    m.deposit(CLIENT, 5_000)
    m.register_provider(PROVIDER, name="q", capacity=5, exec_time=1, price=1)
    for i, pay in enumerate((101, 250, 999, 1)):
        j = m.submit_job(CLIENT, algorithm_ref=ALGO, required_capacity=1, deadline_hours=1, value=pay)
        if i % 2:
            m.cancel_job(CLIENT, job_id=j.job_id)
        else:
            m.accept_and_execute_job(PROVIDER, job_id=j.job_id, result_ref=RESULT)
    assert m.ledger.bank.total_supply() == 5_000
