"""
Prometheus Metrics for the Snapshot Mock API.

This module defines all metrics exposed at the /metrics endpoint.
Metrics are categorized into:

1. Mock Traffic Metrics - what integration suites are asking for
   - Lookup outcomes, candidate counts, snapshot mutations

2. Technical Metrics - store health
   - Store operation latencies, failures, connection attempts
"""
from prometheus_client import Counter, Histogram, Info

# =============================================================================
# SERVICE INFO
# =============================================================================

SERVICE_INFO = Info(
    "snapshot_service",
    "Service information"
)
SERVICE_INFO.info({
    "version": "0.1.0",
    "service": "snapshot-mock-api",
})

# =============================================================================
# MOCK TRAFFIC METRICS
# =============================================================================

# Counter: Lookups by outcome
LOOKUP_TOTAL = Counter(
    "snapshot_lookup_total",
    "Total win/lose lookups served",
    ["outcome"]  # found, not_found
)

# Counter: Whether the refinement step picked a matching candidate
LOOKUP_SELECTION = Counter(
    "snapshot_lookup_selection_total",
    "How the returned record was selected",
    ["selection"]  # matched, fallback
)

# Histogram: Candidate records per matched document
LOOKUP_CANDIDATES = Histogram(
    "snapshot_lookup_candidates",
    "Number of candidate records in the matched document",
    buckets=[1, 2, 5, 10, 25, 50, 100]
)

# Counter: Snapshot mutations by operation
SNAPSHOT_MUTATIONS = Counter(
    "snapshot_mutations_total",
    "Snapshot documents touched by CRUD endpoints",
    ["operation"]  # insert, update, upsert, delete
)

# =============================================================================
# TECHNICAL METRICS
# =============================================================================

# Histogram: Store operation latency
STORE_OPERATION_LATENCY = Histogram(
    "snapshot_store_operation_latency_seconds",
    "Document store operation execution time",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0, 30.0]
)

# Counter: Store operation failures
STORE_OPERATION_FAILURES = Counter(
    "snapshot_store_operation_failures_total",
    "Total document store operation failures",
    ["operation", "error_type"]  # error_type: timeout, store_error, encode_error
)

# Counter: Store connection attempts
STORE_CONNECT_TOTAL = Counter(
    "snapshot_store_connect_total",
    "Document store connection attempts",
    ["outcome"]  # success, config_error, connection_error
)

# =============================================================================
# HTTP METRICS (Standard)
# =============================================================================

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

HTTP_REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def record_lookup(found: bool, candidate_count: int = 0, refined: bool = False) -> None:
    """
    Record metrics for a single lookup.

    Args:
        found: Whether a record was returned
        candidate_count: Records decoded from the matched document
        refined: Whether a candidate satisfied every requested predicate
    """
    LOOKUP_TOTAL.labels(outcome="found" if found else "not_found").inc()

    if not found:
        return

    LOOKUP_CANDIDATES.observe(candidate_count)
    LOOKUP_SELECTION.labels(selection="matched" if refined else "fallback").inc()


def record_store_operation(
    operation: str,
    latency_seconds: float,
    success: bool,
    error_type: str = None,
) -> None:
    """Record store operation metrics."""
    STORE_OPERATION_LATENCY.labels(operation=operation).observe(latency_seconds)

    if not success:
        STORE_OPERATION_FAILURES.labels(
            operation=operation,
            error_type=error_type or "unknown",
        ).inc()


def record_store_connect(outcome: str) -> None:
    """Record the outcome of the single store initialization attempt."""
    STORE_CONNECT_TOTAL.labels(outcome=outcome).inc()


def record_mutation(operation: str, count: int = 1) -> None:
    """Record snapshot documents inserted, updated, upserted or deleted."""
    if count > 0:
        SNAPSHOT_MUTATIONS.labels(operation=operation).inc(count)


def record_http_request(method: str, endpoint: str, status: int, latency_seconds: float) -> None:
    """Record standard HTTP request metrics."""
    HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status=status).inc()
    HTTP_REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(latency_seconds)
