# services/metrics.py
from __future__ import annotations
import os

os.environ.setdefault("PROMETHEUS_DISABLE_CREATED_SERIES", "1")

from prometheus_client import (  # noqa: E402
    Counter, Histogram, CollectorRegistry,
    generate_latest, CONTENT_TYPE_LATEST,
)

# Use a DEDICATED registry so only our app metrics show up
APP_REGISTRY = CollectorRegistry(auto_describe=True)

# --- Generic HTTP metrics (bind to our registry) ---
REQUEST_COUNT = Counter(
    "http_requests_total", "HTTP requests total",
    ["method", "endpoint", "status"], registry=APP_REGISTRY
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Request latency (seconds)",
    ["endpoint", "method"], registry=APP_REGISTRY,
)

# --- Payments / Webhook ---
WEBHOOK_EVENTS = Counter(
    "payments_webhook_events_total", "Webhook events", ["provider", "event", "outcome"], registry=APP_REGISTRY
)
SETTLEMENTS_CREATED = Counter(
    "settlements_created_total", "Settlement rows created", ["source"], registry=APP_REGISTRY
)
# paid-but-unsettled orders; gateway retries will not repair these
PARTIAL_FAILURES = Counter(
    "payments_partial_failures_total", "Orders marked paid whose settlement write failed", registry=APP_REGISTRY
)
AUDIT_WRITE_FAILURES = Counter(
    "payments_audit_write_failures_total", "Payment audit rows that failed to persist", registry=APP_REGISTRY
)


def init_app(app):
    @app.get("/metrics")
    def metrics():
        data = generate_latest(APP_REGISTRY)
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    # --- pre-warm labeled series so dashboards don't say "No data" ---
    for outcome in ("processed", "duplicate", "ignored", "validation", "not_found",
                    "store_error", "partial_failure", "conflicting_reference"):
        WEBHOOK_EVENTS.labels(
            provider="toss", event="payment_status_changed", outcome=outcome).inc(0)
    for source in ("webhook", "reconcile"):
        SETTLEMENTS_CREATED.labels(source=source).inc(0)
