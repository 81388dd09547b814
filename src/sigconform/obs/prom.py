"""Prometheus instrumentation for conformance runs.

Labels stay low-cardinality: result/rule for verdicts, adapter class name for
signer latency. Case ids are never used as labels.
"""
from __future__ import annotations

from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Registry must be created before metric objects reference it.
REGISTRY = CollectorRegistry()

CASES_TOTAL = Counter(
    "sigconform_cases_total",
    "Conformance cases verdicted, by result and violated rule.",
    ["result", "rule"],
    registry=REGISTRY,
)
SIGNER_LATENCY = Histogram(
    "sigconform_signer_latency_ms",
    "Wall time of a single external signer invocation (ms).",
    ["adapter", "outcome"],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
    registry=REGISTRY,
)
CASES_INFLIGHT = Gauge(
    "sigconform_cases_inflight",
    "Cases currently dispatched to the signer.",
    registry=REGISTRY,
)


def observe_verdict(*, passed: bool, rule: Optional[str]):
    CASES_TOTAL.labels(result="pass" if passed else "fail", rule=rule or "none").inc()


def observe_signer_call(*, adapter: str, outcome: str, latency_ms: float):
    SIGNER_LATENCY.labels(adapter=adapter, outcome=outcome).observe(latency_ms)


def prometheus_latest() -> tuple[bytes, str]:
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "REGISTRY",
    "CASES_TOTAL",
    "SIGNER_LATENCY",
    "CASES_INFLIGHT",
    "observe_verdict",
    "observe_signer_call",
    "prometheus_latest",
]
