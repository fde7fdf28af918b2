"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
ingestions_total = Counter(
    "ingestions_total",
    "Content ingestion outcomes",
    ["outcome"],  # created, duplicate
)

verifications_total = Counter(
    "verifications_total",
    "Mention proof verification outcomes",
    ["outcome"],  # published, not_found, already_used, wrong_status, invalid_token
)

replies_total = Counter(
    "replies_total",
    "Outbound social replies",
    ["kind", "outcome"],  # kind: reply, dm; outcome: sent, permanent_failure, retry
)

paywall_requests_total = Counter(
    "paywall_requests_total",
    "Content fetch outcomes",
    ["outcome"],  # delivered, payment_required, payment_invalid, not_found, content_corrupted, settlement_failed
)

dead_letter_jobs_total = Counter(
    "dead_letter_jobs_total",
    "Jobs parked after exhausting retries",
    ["task"],
)

social_requests_total = Counter(
    "social_requests_total",
    "Total social API requests",
    ["method", "status"],
)

facilitator_requests_total = Counter(
    "facilitator_requests_total",
    "Total x402 facilitator requests",
    ["method", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
social_request_duration_seconds = Histogram(
    "social_request_duration_seconds",
    "Social API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
)

facilitator_request_duration_seconds = Histogram(
    "facilitator_request_duration_seconds",
    "x402 facilitator request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
