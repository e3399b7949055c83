"""Prometheus collectors."""

from prometheus_client import Counter, Histogram

# HTTP request counter: http_requests_total{method, route, status}
http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "route", "status"],
)

# HTTP request duration histogram: http_request_duration_seconds{method, route}
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "route"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Pushed items by outcome: sync_items_total{kind, outcome}
sync_items_total = Counter(
    "sync_items_total",
    "Pushed sync items by kind (session|result) and outcome",
    ["kind", "outcome"],
)

# Delta rows returned to devices: sync_delta_rows_total{kind}
sync_delta_rows_total = Counter(
    "sync_delta_rows_total",
    "Rows returned in sync deltas",
    ["kind"],
)
