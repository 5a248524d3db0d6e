"""
Prometheus metrics for the studio booking store.

Metrics live on a dedicated registry so embedding applications can expose
them next to their own without name clashes.
"""

import logging
from typing import cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

db_pool_acquire_seconds = Histogram(
    "studiobook_db_pool_acquire_seconds",
    "Time spent waiting for a pooled connection",
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

db_pool_exhausted_total = Counter(
    "studiobook_db_pool_exhausted_total",
    "Number of acquires that timed out waiting for a connection",
    registry=REGISTRY,
)

db_pool_connections_in_use = Gauge(
    "studiobook_db_pool_connections_in_use",
    "Pooled connections currently checked out",
    registry=REGISTRY,
)

db_transactions_total = Counter(
    "studiobook_db_transactions_total",
    "Write transactions by outcome",
    ["operation", "outcome"],  # outcome: committed | rolled_back
    registry=REGISTRY,
)

audit_events_total = Counter(
    "studiobook_audit_events_total",
    "Audit events dispatched to hooks",
    ["entity_type", "action", "status"],  # status: ok | error
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade over the module level metrics."""

    @staticmethod
    def observe_pool_acquire(wait_seconds: float) -> None:
        try:
            db_pool_acquire_seconds.observe(max(wait_seconds, 0.0))
        except Exception:
            logger.debug("Failed to record pool acquire metric", exc_info=True)

    @staticmethod
    def inc_pool_exhausted() -> None:
        try:
            db_pool_exhausted_total.inc()
        except Exception:
            logger.debug("Failed to record pool exhaustion metric", exc_info=True)

    @staticmethod
    def set_connections_in_use(count: int) -> None:
        try:
            db_pool_connections_in_use.set(count)
        except Exception:
            logger.debug("Failed to record pool usage metric", exc_info=True)

    @staticmethod
    def record_transaction(operation: str, outcome: str) -> None:
        try:
            db_transactions_total.labels(operation=operation, outcome=outcome).inc()
        except Exception:
            logger.debug("Failed to record transaction metric", exc_info=True)

    @staticmethod
    def record_audit_event(entity_type: str, action: str, status: str) -> None:
        try:
            audit_events_total.labels(entity_type=entity_type, action=action, status=status).inc()
        except Exception:
            logger.debug("Failed to record audit metric", exc_info=True)

    @staticmethod
    def get_metrics() -> bytes:
        """Generate metrics in Prometheus text exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
