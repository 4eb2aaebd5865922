"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['outcome']  # created, already_booked, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_retries = Counter(
    'booking_retry_attempts_total',
    'Booking retries due to event version conflicts'
)

# Payment reconciliation metrics
webhook_events = Counter(
    'payment_webhook_events_total',
    'Payment provider notifications received',
    ['event_type', 'outcome']  # processed, ignored, rejected, failed
)

payment_correlations = Counter(
    'payment_correlations_total',
    'How incoming payment events were matched',
    ['matched_by']  # payment_id, order_id, event_user, orphan
)

side_effect_failures = Counter(
    'side_effect_failures_total',
    'Best-effort secondary updates that failed',
    ['name']
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_booking_attempt(outcome: str):
    """Record booking attempt. Outcome: created, already_booked, rejected, error"""
    booking_attempts.labels(outcome=outcome).inc()

def record_webhook_event(event_type: str, outcome: str):
    webhook_events.labels(event_type=event_type or "unknown", outcome=outcome).inc()

def record_correlation(matched_by: str):
    payment_correlations.labels(matched_by=matched_by).inc()

def record_side_effect_failure(name: str):
    side_effect_failures.labels(name=name).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
