"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
reservation_attempts = Counter(
    'reservation_attempts_total',
    'Total reservation attempts',
    ['outcome']  # created, invalid_window, no_capacity, busy, persistence_failure, ...
)

reservation_cancellations = Counter(
    'reservation_cancellations_total',
    'Total reservation cancellations',
    ['outcome']
)

# Admission control metrics
admission_requests = Counter(
    'admission_requests_total',
    'Total admission control requests',
    ['result']  # admitted, rejected, busy
)

admission_latency = Histogram(
    'admission_check_latency_seconds',
    'Admission check latency, including time spent waiting for the garage lease',
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5]
)

capacity_invariant_violations = Counter(
    'capacity_invariant_violations_total',
    'Garages observed with more simultaneous active reservations than spaces'
)

admission_release_failures = Counter(
    'admission_release_failures_total',
    'Admission leases that could not be released after all retries'
)

# Recommendation metrics
recommendation_requests = Counter(
    'recommendation_requests_total',
    'Recommendation rankings computed'
)

recommendation_clicks = Counter(
    'recommendation_clicks_total',
    'Recommendations clicked by users'
)

# Redis metrics
redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)

redis_circuit_breaker_open = Gauge(
    'redis_circuit_breaker_open',
    'Redis circuit breaker state (1=open, 0=closed)'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation_attempt(outcome: str):
    reservation_attempts.labels(outcome=outcome).inc()


def record_cancellation(outcome: str):
    reservation_cancellations.labels(outcome=outcome).inc()


def record_admission(result: str):
    """Record admission control decision. Result: admitted, rejected, busy"""
    admission_requests.labels(result=result).inc()
