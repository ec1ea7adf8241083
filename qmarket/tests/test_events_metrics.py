from __future__ import annotations

import asyncio

import pytest
from prometheus_client import generate_latest

from qmarket import metrics
from qmarket.errors import CapacityInsufficient
from qmarket.events import EventRecorder
from qmarket.market import Marketplace
from qmarket.ledger.clock import ManualClock
from qmarket.qtypes.events import EventType, event_from_dict, event_to_dict

from . import ALGO, CLIENT, PROVIDER, RESULT, T0


def _sample(name: str, labels=None) -> float:
    v = metrics.REGISTRY.get_sample_value(name, labels or {})
    return v or 0.0


def test_events_for_a_full_lifecycle():
    m = Marketplace(clock=ManualClock(T0), instrument=False)
    rec = EventRecorder()
    m.subscribe(rec)
    m.deposit(CLIENT, 1_000)
    m.register_provider(PROVIDER, name="q", capacity=5, exec_time=1, price=1)
    m.register_algorithm(CLIENT, ipfs_hash=ALGO, name="a", min_qubits=1, est_time=1, price=1, is_public=True)
    a = m.submit_job(CLIENT, algorithm_ref=ALGO, required_capacity=1, deadline_hours=1, value=100)
    b = m.submit_job(CLIENT, algorithm_ref=ALGO, required_capacity=1, deadline_hours=1, value=100)
    m.accept_and_execute_job(PROVIDER, job_id=a.job_id, result_ref=RESULT)
    m.cancel_job(CLIENT, job_id=b.job_id)
    m.dispute_job(CLIENT, job_id=b.job_id)

    assert [e.etype for e in rec.events] == [
        EventType.PROVIDER_REGISTERED,
        EventType.ALGORITHM_REGISTERED,
        EventType.JOB_SUBMITTED,
        EventType.JOB_SUBMITTED,
        EventType.JOB_ASSIGNED,
        EventType.JOB_COMPLETED,
        EventType.PAYMENT_RELEASED,
        EventType.JOB_CANCELLED,
        EventType.JOB_DISPUTED,
    ]
    paid = rec.of_type(EventType.PAYMENT_RELEASED)[0]
    assert (paid.job_id, paid.provider, paid.amount, paid.platform_fee) == (a.job_id, PROVIDER, 97, 3)
    assert all(e.ts == T0 for e in rec.events)


def test_event_dict_roundtrip():
    m = Marketplace(clock=ManualClock(T0), instrument=False)
    rec = EventRecorder()
    m.subscribe(rec)
    m.register_provider(PROVIDER, name="q", capacity=5, exec_time=1, price=1)
    d = event_to_dict(rec.events[0])
    assert d["etype"] == "ProviderRegistered"
    assert event_from_dict(d) == rec.events[0]


def test_unsubscribe_stops_delivery():
    m = Marketplace(clock=ManualClock(T0), instrument=False)
    rec = EventRecorder()
    off = m.subscribe(rec)
    off()
    m.register_provider(PROVIDER, name="q", capacity=5, exec_time=1, price=1)
    assert rec.events == []


def test_metrics_count_only_committed_work():
    m = Marketplace(clock=ManualClock(T0))
    m.deposit(CLIENT, 1_000)
    m.register_provider(PROVIDER, name="q", capacity=5, exec_time=1, price=1)

    submitted = _sample("qmarket_jobs_submitted_total")
    completed = _sample("qmarket_job_transitions_total", {"transition": "completed"})
    payouts = _sample("qmarket_payouts_total")
    fees = _sample("qmarket_platform_fees_total")
    cap_rejects = _sample("qmarket_rejections_total", {"op": "accept_and_execute_job", "code": "CAPACITY_INSUFFICIENT"})

    job = m.submit_job(CLIENT, algorithm_ref=ALGO, required_capacity=9, deadline_hours=1, value=100)
    with pytest.raises(CapacityInsufficient):
        m.accept_and_execute_job(PROVIDER, job_id=job.job_id, result_ref=RESULT)
    job2 = m.submit_job(CLIENT, algorithm_ref=ALGO, required_capacity=1, deadline_hours=1, value=100)
    m.accept_and_execute_job(PROVIDER, job_id=job2.job_id, result_ref=RESULT)

    assert _sample("qmarket_jobs_submitted_total") == submitted + 2
    assert _sample("qmarket_job_transitions_total", {"transition": "completed"}) == completed + 1
    assert _sample("qmarket_payouts_total") == payouts + 1
    assert _sample("qmarket_platform_fees_total") == fees + 3
    assert _sample(
        "qmarket_rejections_total", {"op": "accept_and_execute_job", "code": "CAPACITY_INSUFFICIENT"}
    ) == cap_rejects + 1


def test_prometheus_asgi_app_serves_exposition():
    app = metrics.make_prometheus_asgi_app()
    sent = []

    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(msg):
        sent.append(msg)

    asyncio.run(app({"type": "http", "path": "/"}, receive, send))
    assert sent[0]["status"] == 200
    assert b"qmarket_jobs_submitted_total" in sent[1]["body"]
    assert b"qmarket_jobs_submitted_total" in generate_latest(metrics.REGISTRY)
