from __future__ import annotations

"""
Prometheus metrics for the compute marketplace.

We expose counters and histograms covering:
- providers: registrations
- jobs: submissions and terminal transitions (completed/cancelled/disputed)
- rejections: guard failures by error code and operation
- money: payouts, payout amounts, platform fees, cancellation refunds
- latency: time spent inside a settlement

This module is dependency-light and can be mounted into any ASGI app
or FastAPI app via the helpers at the bottom.
"""


import time
from contextlib import contextmanager
from typing import Optional

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Histogram, generate_latest)

# Use a dedicated registry so embedding apps can choose to merge or expose it directly.
REGISTRY = CollectorRegistry()

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   op: "register_provider" | "submit_job" | "accept_and_execute_job" |
#       "register_algorithm" | "cancel_job" | "dispute_job"
#   code: MarketError.code (e.g. "DEADLINE_EXPIRED")
#   transition: "completed" | "cancelled" | "disputed"
# ────────────────────────────────────────────────────────────────────────────────

# Counters
PROVIDERS_REGISTERED = Counter(
    "qmarket_providers_registered_total",
    "Total providers registered.",
    registry=REGISTRY,
)

ALGORITHMS_REGISTERED = Counter(
    "qmarket_algorithms_registered_total",
    "Total algorithms registered.",
    registry=REGISTRY,
)

JOBS_SUBMITTED = Counter(
    "qmarket_jobs_submitted_total",
    "Total jobs submitted with escrowed funds.",
    registry=REGISTRY,
)

JOB_TRANSITIONS = Counter(
    "qmarket_job_transitions_total",
    "Total job lifecycle transitions by target.",
    labelnames=("transition",),
    registry=REGISTRY,
)

REJECTIONS = Counter(
    "qmarket_rejections_total",
    "Total operations rejected by a guard, by operation and error code.",
    labelnames=("op", "code"),
    registry=REGISTRY,
)

PAYOUTS = Counter(
    "qmarket_payouts_total",
    "Total escrow releases to providers.",
    registry=REGISTRY,
)

PLATFORM_FEES = Counter(
    "qmarket_platform_fees_total",
    "Sum of platform fees retained on settlement (smallest unit).",
    registry=REGISTRY,
)

REFUNDS = Counter(
    "qmarket_refunds_total",
    "Sum of cancellation refunds paid to clients (smallest unit).",
    registry=REGISTRY,
)

# Histograms
_LATENCY_BUCKETS = (
    0.0005,
    0.001,
    0.005,
    0.01,
    0.05,
    0.1,
    0.5,
    1.0,
)

SETTLEMENT_SECONDS = Histogram(
    "qmarket_settlement_seconds",
    "Time spent computing and applying a settlement.",
    buckets=_LATENCY_BUCKETS,
    registry=REGISTRY,
)

PAYOUT_AMOUNT = Histogram(
    "qmarket_payout_amount",
    "Distribution of provider payout amounts (smallest unit).",
    buckets=(
        1,
        10,
        100,
        1_000,
        10_000,
        100_000,
        1_000_000,
        10_000_000,
        100_000_000,
        1_000_000_000,
    ),
    registry=REGISTRY,
)

# ────────────────────────────────────────────────────────────────────────────────
# Recording helpers
# ────────────────────────────────────────────────────────────────────────────────


def record_provider_registered() -> None:
    PROVIDERS_REGISTERED.inc()


def record_algorithm_registered() -> None:
    ALGORITHMS_REGISTERED.inc()


def record_job_submitted() -> None:
    JOBS_SUBMITTED.inc()


def record_transition(transition: str) -> None:
    """Increment the transition counter: 'completed' | 'cancelled' | 'disputed'."""
    JOB_TRANSITIONS.labels(transition=transition).inc()


def record_rejection(op: str, code: str) -> None:
    """Record a guard failure for `op` with the error's code."""
    REJECTIONS.labels(op=op, code=code).inc()


def record_payout(amount: int, platform_fee: int) -> None:
    """Record an escrow release and observe its amount."""
    PAYOUTS.inc()
    if amount >= 0:
        PAYOUT_AMOUNT.observe(float(amount))
    if platform_fee > 0:
        PLATFORM_FEES.inc(platform_fee)


def record_refund(amount: int) -> None:
    if amount > 0:
        REFUNDS.inc(amount)


def observe_event(ev) -> None:
    """
    Event-bus subscriber: derive counters from committed events so rolled-back
    transactions never count.
    """
    from qmarket.qtypes.events import EventType

    et = ev.etype
    if et == EventType.PROVIDER_REGISTERED:
        record_provider_registered()
    elif et == EventType.ALGORITHM_REGISTERED:
        record_algorithm_registered()
    elif et == EventType.JOB_SUBMITTED:
        record_job_submitted()
    elif et == EventType.JOB_COMPLETED:
        record_transition("completed")
    elif et == EventType.PAYMENT_RELEASED:
        record_payout(ev.amount, ev.platform_fee)
    elif et == EventType.JOB_CANCELLED:
        record_transition("cancelled")
        record_refund(ev.refund)
    elif et == EventType.JOB_DISPUTED:
        record_transition("disputed")


@contextmanager
def time_settlement():
    """Context manager to observe settlement latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        SETTLEMENT_SECONDS.observe(time.perf_counter() - start)


# ────────────────────────────────────────────────────────────────────────────────
# ASGI/FastAPI mounting helpers
# ────────────────────────────────────────────────────────────────────────────────


def make_prometheus_asgi_app(registry: Optional[CollectorRegistry] = None):
    """
    Return a minimal ASGI app that serves Prometheus metrics at '/'.
    No external web framework required.
    """
    reg = registry or REGISTRY

    async def app(scope, receive, send):  # type: ignore[override]
        if scope["type"] != "http":
            await send({"type": "http.response.start", "status": 404, "headers": []})
            await send({"type": "http.response.body", "body": b"Not Found"})
            return
        path = scope.get("path") or "/"
        if path not in ("/", ""):
            await send({"type": "http.response.start", "status": 404, "headers": []})
            await send({"type": "http.response.body", "body": b"Not Found"})
            return
        payload = generate_latest(reg)
        headers = [
            (b"content-type", CONTENT_TYPE_LATEST.encode("ascii")),
            (b"cache-control", b"no-cache, no-store, must-revalidate"),
        ]
        await send({"type": "http.response.start", "status": 200, "headers": headers})
        await send({"type": "http.response.body", "body": payload})

    return app


def mount_fastapi(
    app, path: str = "/metrics", registry: Optional[CollectorRegistry] = None
) -> None:
    """
    Mount a GET {path} endpoint on a FastAPI app to serve metrics.

    Usage:
        from fastapi import FastAPI
        from qmarket.metrics import mount_fastapi
        app = FastAPI()
        mount_fastapi(app)
    """
    from fastapi import Response

    reg = registry or REGISTRY

    @app.get(path)
    def _metrics():
        return Response(generate_latest(reg), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "PROVIDERS_REGISTERED",
    "ALGORITHMS_REGISTERED",
    "JOBS_SUBMITTED",
    "JOB_TRANSITIONS",
    "REJECTIONS",
    "PAYOUTS",
    "PLATFORM_FEES",
    "REFUNDS",
    "SETTLEMENT_SECONDS",
    "PAYOUT_AMOUNT",
    "record_provider_registered",
    "record_algorithm_registered",
    "record_job_submitted",
    "record_transition",
    "record_rejection",
    "record_payout",
    "record_refund",
    "observe_event",
    "time_settlement",
    "make_prometheus_asgi_app",
    "mount_fastapi",
]
