"""
Prometheus metrics for the rate controller and replica barrier.

Collected on the global REGISTRY; expose with
``prometheus_client.start_http_server(port)`` (the CLI does this when
METRICS_PORT is set).
"""

from prometheus_client import Counter, Gauge, Histogram


# --- Rate controller ---

RATE_UPDATES_TOTAL = Counter(
    "lag_limiter_rate_updates_total",
    "Batch observations fed to the rate controller",
    ["signal"],
)

AVG_RATE = Gauge(
    "lag_limiter_avg_rate",
    "Smoothed units of work per second on the primary",
)

AVG_BATCH_SECONDS = Gauge(
    "lag_limiter_avg_batch_seconds",
    "Smoothed seconds per batch on the primary",
)


# --- Replica barrier ---

REPLICA_POLLS_TOTAL = Counter(
    "lag_limiter_replica_polls_total",
    "Replica lag checks by outcome",
    ["outcome"],
)

BARRIER_WAITS_TOTAL = Counter(
    "lag_limiter_barrier_waits_total",
    "Completed barrier waits by outcome",
    ["outcome"],
)

BARRIER_WAIT_SECONDS = Histogram(
    "lag_limiter_barrier_wait_seconds",
    "Time spent waiting for replicas to catch up",
    buckets=[0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 300, 900, 3600],
)


class MetricsRegistry:
    """Groups the limiter metrics for callers and tests."""

    rate_updates_total = RATE_UPDATES_TOTAL
    avg_rate = AVG_RATE
    avg_batch_seconds = AVG_BATCH_SECONDS
    replica_polls_total = REPLICA_POLLS_TOTAL
    barrier_waits_total = BARRIER_WAITS_TOTAL
    barrier_wait_seconds = BARRIER_WAIT_SECONDS


# Singleton instance
metrics_registry = MetricsRegistry()
