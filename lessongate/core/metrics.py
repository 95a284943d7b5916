"""Prometheus metric inventory.

Every metric the service exposes is defined here; modules import the one
they need and increment/observe it where the behaviour happens.

Counters only go up, so rates come from PromQL, e.g.

  sum by (reason) (rate(access_decisions_total{allowed="false"}[5m]))

shows which block reason is trending.  Engagement write failures are a
counter rather than an error response because those writes are
best-effort and never surface to the learner.
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
# Access / engagement metrics
# ---------------------------------------------------------------------------

ACCESS_DECISIONS = Counter(
    "access_decisions_total",
    "Eligibility decisions by outcome and reason",
    ["allowed", "reason"],
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

FETCH_FAILURES = Counter(
    "collaborator_fetch_failures_total",
    "Collaborator lookups that failed and were treated as unavailable",
    ["source"],  # profile|enrollment|completion|roles
)

ENGAGEMENT_WRITES = Counter(
    "engagement_writes_total",
    "Engagement session persistence attempts by result",
    ["result"],  # written|skipped|failed
)

PREVIEW_LOCKS = Counter(
    "preview_locks_total",
    "Preview timers that reached zero and locked",
)

PREVIEW_FINAL_DURATION = Histogram(
    "preview_final_duration_seconds",
    "Watched seconds reported when a preview locks",
    buckets=[15, 30, 60, 90, 120, 150, 180, 300],
)

ACTIVE_VIEWING_SESSIONS = Gauge(
    "viewing_sessions_active",
    "Viewing sessions currently mounted in this process",
)
