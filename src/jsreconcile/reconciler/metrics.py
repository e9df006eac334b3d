"""Prometheus metrics for lifecycle calls."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

OUTCOME_OK = "ok"
OUTCOME_ABSENT = "absent"
OUTCOME_ERROR = "error"

_LIFECYCLE_CALLS_TOTAL = Counter(
    "jsreconcile_lifecycle_calls_total",
    "Lifecycle calls by resource kind, operation and outcome",
    labelnames=("kind", "operation", "outcome"),
)
_LIFECYCLE_DURATION_SECONDS = Histogram(
    "jsreconcile_lifecycle_duration_seconds",
    "Wall time of lifecycle calls including remote round trips",
    labelnames=("kind", "operation"),
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)


def record_call(kind: str, operation: str, outcome: str, duration_s: float) -> None:
    """Count one lifecycle call and observe its duration."""

    _LIFECYCLE_CALLS_TOTAL.labels(kind=kind, operation=operation, outcome=outcome).inc()
    _LIFECYCLE_DURATION_SECONDS.labels(kind=kind, operation=operation).observe(max(duration_s, 0.0))
