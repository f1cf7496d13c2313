"""Prometheus metric inventory.

Every metric the service exposes is declared here and incremented at the
point of action by the module that owns the behavior.  Counters never go
down, so tests assert on deltas (see tests/middleware/test_metrics.py).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress state machine
# ---------------------------------------------------------------------------

PROGRESS_TRANSITIONS = Counter(
    "progress_transitions_total",
    "Progress ledger transitions by kind",
    # activated|completed|unlocked|exhausted|rejected|no_topics
    ["transition"],
)

REPORT_CACHE_OPERATIONS = Counter(
    "report_cache_operations_total",
    "Course progress report cache lookups and invalidations",
    ["operation"],  # hit|miss|invalidate
)

GRADED_ATTEMPTS = Counter(
    "graded_attempts_total",
    "Test attempts graded, by outcome",
    ["outcome"],  # passed|failed
)
