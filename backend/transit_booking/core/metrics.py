"""
Metrics instrumentation for the reservation engine.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

reservation_operations = Counter(
    'reservation_operations_total',
    'Reservation engine operations by outcome',
    ['operation', 'outcome']  # create/update/cancel/delete x success/<error type>
)

reservation_latency = Histogram(
    'reservation_operation_latency_seconds',
    'Reservation engine operation latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

reservation_code_collisions = Counter(
    'reservation_code_collisions_total',
    'Reservation code uniqueness violations that triggered a retry'
)

availability_cache_operations = Counter(
    'availability_cache_operations_total',
    'Availability cache lookups',
    ['result']  # hit, miss, error
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation_operation(operation: str, outcome: str):
    """Record engine outcome. Outcome: success or the error type name."""
    reservation_operations.labels(operation=operation, outcome=outcome).inc()


def record_code_collision():
    reservation_code_collisions.inc()


def record_cache_lookup(result: str):
    """Record availability cache lookup. Result: hit, miss, error"""
    availability_cache_operations.labels(result=result).inc()
