"""Prometheus metrics for health data observability.

Counters and histograms at each stage: provider reads, permission checks,
writes, archive saves, widget pushes and API requests.
Exposed via /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Provider counters
metric_reads_total = Counter(
    "metric_reads_total",
    "Total per-metric platform reads",
    ["platform", "kind", "status"],  # status: ok, failed, denied
)

permission_checks_total = Counter(
    "permission_checks_total",
    "Total permission requests and checks by outcome",
    ["platform", "operation", "outcome"],  # outcome: granted, denied, sdk_error
)

health_writes_total = Counter(
    "health_writes_total",
    "Total platform writes by outcome",
    ["platform", "outcome"],  # outcome: written, rejected, failed
)

# Archive / widgets
archive_saves_total = Counter(
    "archive_saves_total",
    "Total weekly archive saves by outcome",
    ["outcome"],  # outcome: inserted, replaced, failed
)

widget_updates_total = Counter(
    "widget_updates_total",
    "Total widget projections resolved by source",
    ["widget", "source"],  # source: live, cache, default
)

# API counters
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["endpoint", "method", "status_code"],
)

# Histograms
provider_call_duration_seconds = Histogram(
    "provider_call_duration_seconds",
    "Duration of platform health capability calls",
    ["platform", "operation"],
)

daily_read_duration_seconds = Histogram(
    "daily_read_duration_seconds",
    "Duration of a full daily snapshot read",
    ["platform"],
)

api_response_duration_seconds = Histogram(
    "api_response_duration_seconds",
    "Duration of API responses",
    ["endpoint"],
)


def create_metrics_app():
    """Create ASGI app for /metrics endpoint."""
    return make_asgi_app()
