"""Prometheus metric inventory.

Every metric the service exposes is defined here; the modules that own
the behaviour import and increment them at the point of action.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
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
# Domain metrics
# ---------------------------------------------------------------------------

ENROLLMENTS_STARTED = Counter(
    "enrollments_started_total",
    "start_enrollment calls by course kind and outcome",
    ["kind", "result"],  # kind: free|paid, result: created|existing
)

PAYMENT_REVIEWS = Counter(
    "payment_reviews_total",
    "Payment review attempts by outcome",
    ["outcome"],  # approved|rejected|already_reviewed
)

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "mark_lesson_complete calls by result",
    ["result"],  # recorded|duplicate|course_completed|denied
)

DOMAIN_EVENTS = Counter(
    "domain_events_total",
    "Domain events published to the notification queue",
    ["event_type"],
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # hit|miss
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
