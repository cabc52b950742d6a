"""Prometheus instrumentation for invocations and topic map refreshes.

Metrics are registered on the default ``prometheus_client`` registry; expose
them from the host application with ``prometheus_client.start_http_server`` or
its ASGI app.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

invocations_total = Counter(
    "topicrelay_invocations_total",
    "Invocations attempted through the gateway, by outcome.",
    ["outcome"],
)

invocation_duration_seconds = Histogram(
    "topicrelay_invocation_duration_seconds",
    "Latency of function invocations including reading the response body.",
)

refresh_failures_total = Counter(
    "topicrelay_refresh_failures_total",
    "Topic map rebuilds that failed and kept the previous table.",
)

topics = Gauge(
    "topicrelay_topics",
    "Number of topics in the routing table after the last successful rebuild.",
)
