"""Prometheus metrics for the restock monitor."""

import time

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("restock_watch", "Restock monitor application info")
app_info.info({"version": "0.1.0", "name": "restock-watch"})

# Probe metrics
probes_total = Counter(
    "restock_probes_total",
    "Total number of target probes by outcome",
    ["target", "status"],
)

probe_duration_seconds = Histogram(
    "restock_probe_duration_seconds",
    "Time spent probing a target",
    ["target"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

# State metrics
state_transitions_total = Counter(
    "restock_state_transitions_total",
    "Total number of confirmed stock status transitions",
    ["target", "direction"],
)

error_streak = Gauge(
    "restock_error_streak",
    "Current consecutive error count per target",
    ["target"],
)

# Alert metrics
alerts_total = Counter(
    "restock_alerts_total",
    "Per-channel alert deliveries by kind and result",
    ["kind", "status"],
)

# Check run metrics
check_runs_total = Counter(
    "restock_check_runs_total",
    "Total number of check runs",
    ["status"],
)

check_last_run_timestamp = Gauge(
    "restock_check_last_run_timestamp",
    "Timestamp of last completed check run",
)


def record_probe(target: str, status: str, duration: float):
    """Record a finished probe."""
    probes_total.labels(target=target, status=status).inc()
    probe_duration_seconds.labels(target=target).observe(duration)


def record_transition(target: str, direction: str):
    """Record a confirmed status change ("in" or "out")."""
    state_transitions_total.labels(target=target, direction=direction).inc()


def update_error_streak(target: str, streak: int):
    error_streak.labels(target=target).set(streak)


def record_alert(kind: str, status: str):
    """Record one channel delivery outcome ("sent" or "failed")."""
    alerts_total.labels(kind=kind, status=status).inc()


def record_check_run(status: str):
    """Record a check run ("success", "error" or "skipped")."""
    check_runs_total.labels(status=status).inc()
    if status == "success":
        check_last_run_timestamp.set(time.time())
