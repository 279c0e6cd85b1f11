"""Prometheus metrics for webhook intake and processing.

This module provides Prometheus metrics for monitoring:
- Webhook deliveries by outcome (accepted, unauthorized, not found, ...)
- Authentication results per method
- Processing outcomes and duration
- Pipeline queue depth
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

PREFIX = "hcm_webhooks"

# ============================================================================
# Intake Metrics
# ============================================================================

WEBHOOKS_RECEIVED = Counter(
    f"{PREFIX}_received_total",
    "Inbound webhook deliveries by outcome",
    ["outcome"],
)

AUTH_RESULTS = Counter(
    f"{PREFIX}_auth_results_total",
    "Authentication dispatcher results",
    ["method", "valid"],
)

# ============================================================================
# Processing Metrics
# ============================================================================

PROCESSING_OUTCOMES = Counter(
    f"{PREFIX}_processing_outcomes_total",
    "Processing attempts by final status",
    ["status"],
)

PROCESSING_DURATION = Histogram(
    f"{PREFIX}_processing_duration_seconds",
    "Time spent in business logic for one processing attempt",
    ["status"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

QUEUE_DEPTH = Gauge(
    f"{PREFIX}_processing_queue_depth",
    "Events scheduled and waiting for a pipeline worker",
)

STUCK_EVENTS_FAILED = Counter(
    f"{PREFIX}_stuck_events_failed_total",
    "Events failed by the sweeper after exceeding the processing timeout",
)


def record_delivery(outcome: str) -> None:
    """Count one inbound delivery by outcome label."""
    WEBHOOKS_RECEIVED.labels(outcome=outcome).inc()


def record_auth_result(method: str, valid: bool) -> None:
    """Count one dispatcher decision."""
    AUTH_RESULTS.labels(method=method, valid=str(valid).lower()).inc()


def record_processing(status: str, duration_seconds: float) -> None:
    """Record the outcome and duration of one processing attempt."""
    PROCESSING_OUTCOMES.labels(status=status).inc()
    PROCESSING_DURATION.labels(status=status).observe(duration_seconds)


def get_metrics() -> tuple[bytes, str]:
    """Render the default registry in Prometheus text format.

    Returns:
        Tuple of (body, content type)
    """
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
