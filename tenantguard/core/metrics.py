"""Prometheus metric inventory.

Every metric the service exposes is declared here, once.  Modules that
own a behavior import the metric and update it where the behavior
happens; /metrics renders them all.

HTTP metrics are fed by MetricsMiddleware.  AUTHZ_DENIALS counts guard
chain rejections per procedure, GUARD_REJECTIONS counts abuse-guard hits
per reason, and MAINTENANCE_ROWS counts rows touched per cron job.
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
# Authorization and abuse-prevention metrics
# ---------------------------------------------------------------------------

AUTHZ_DENIALS = Counter(
    "authz_denials_total",
    "Procedure calls rejected by the guard chain",
    ["procedure", "kind"],  # kind: UNAUTHORIZED | FORBIDDEN
)

GUARD_REJECTIONS = Counter(
    "abuse_guard_rejections_total",
    "Mutations rejected by an abuse-prevention guard",
    ["reason"],  # org_cap, member_cap, project_cap, invite_cap, invite_cooldown, ...
)

DOMAIN_ERRORS = Counter(
    "domain_errors_total",
    "Errors surfaced to clients, after translation",
    ["code"],
)

# ---------------------------------------------------------------------------
# Maintenance jobs
# ---------------------------------------------------------------------------

MAINTENANCE_ROWS = Counter(
    "maintenance_rows_total",
    "Rows affected by scheduled maintenance jobs",
    ["job"],  # free_refill, purge, credit_alerts, renewal_reminders
)

MAINTENANCE_DURATION = Histogram(
    "maintenance_job_duration_seconds",
    "Wall-clock duration of a scheduled maintenance run",
    ["job"],
)
