"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Coordinator outcomes
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total seat reservation attempts',
    ['outcome']  # success or an error code (duplicate_booking, insufficient_capacity, ...)
)

cancellation_attempts = Counter(
    'cancellation_attempts_total',
    'Total booking cancellation attempts',
    ['outcome']
)

reservation_latency = Histogram(
    'reservation_latency_seconds',
    'End-to-end reservation latency including lock wait',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

# Locking
lock_wait = Histogram(
    'event_lock_wait_seconds',
    'Time spent acquiring exclusive access to an event inventory row',
    ['strategy'],
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

lock_timeouts = Counter(
    'event_lock_timeouts_total',
    'Units of work that gave up waiting for an event lock'
)

optimistic_retries = Counter(
    'optimistic_lock_retries_total',
    'Re-runs of a unit of work after a version conflict'
)

# Notifications
notification_deliveries = Counter(
    'notification_deliveries_total',
    'Confirmation email deliveries',
    ['result']  # sent, failed, dropped
)

# Cache
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation(outcome: str):
    reservation_attempts.labels(outcome=outcome).inc()


def record_cancellation(outcome: str):
    cancellation_attempts.labels(outcome=outcome).inc()


def record_notification(result: str):
    """Result: sent, failed, dropped"""
    notification_deliveries.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
