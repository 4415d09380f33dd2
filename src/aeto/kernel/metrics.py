"""
Prometheus metrics collection for aeto.

Provides observability into the event store, reconcile passes and
resource generation.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Event Store Metrics
# ============================================================================

events_committed_total = Counter(
    "aeto_events_committed_total",
    "Total number of events committed to the event store",
    ["event_type"],
)

events_loaded_total = Counter(
    "aeto_events_loaded_total",
    "Total number of events loaded from the event store",
)

chunks_written_total = Counter(
    "aeto_chunks_written_total",
    "Total number of stream chunks written",
)

streams_deleted_total = Counter(
    "aeto_streams_deleted_total",
    "Total number of event streams deleted",
)

# ============================================================================
# Reconcile Metrics
# ============================================================================

reconcile_duration_seconds = Histogram(
    "aeto_reconcile_duration_seconds",
    "Duration of reconcile passes in seconds",
    ["controller"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

reconciles_total = Counter(
    "aeto_reconciles_total",
    "Total number of reconcile passes",
    ["controller", "status"],  # status: success, failure
)

replay_duration_seconds = Histogram(
    "aeto_replay_duration_seconds",
    "Duration of projection replay in seconds",
    ["projection_name"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)

# ============================================================================
# Generation Metrics
# ============================================================================

resource_generation_failures_total = Counter(
    "aeto_resource_generation_failures_total",
    "Total number of failed resource generations",
    ["tenant"],
)

generated_resources = Gauge(
    "aeto_generated_resources",
    "Number of resources generated for a tenant in the last pass",
    ["tenant"],
)

resource_sets_retired_total = Counter(
    "aeto_resource_sets_retired_total",
    "Total number of resource sets deleted by retention",
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_reconcile_duration(controller: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track reconcile pass duration.

    Args:
        controller: Name of the controller running the pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                duration = time.perf_counter() - start
                reconcile_duration_seconds.labels(controller=controller).observe(duration)
                reconciles_total.labels(controller=controller, status=status).inc()

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)
