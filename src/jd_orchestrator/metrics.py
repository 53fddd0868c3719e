from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

server_requests_total = Counter(
    "jd_server_requests_total",
    "Total HTTP requests handled by server",
    labelnames=["path", "status"],
)

server_request_latency_seconds = Histogram(
    "jd_server_request_latency_seconds",
    "HTTP request latency (seconds)",
    buckets=[0.05, 0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120],
    labelnames=["path"],
)

server_errors_total = Counter(
    "jd_server_errors_total",
    "Total errors returned by server",
    labelnames=["type"],
)

provider_attempts_total = Counter(
    "jd_provider_attempts_total",
    "Provider call attempts by outcome",
    labelnames=["provider", "outcome"],
)

provider_latency_seconds = Histogram(
    "jd_provider_latency_seconds",
    "Provider call latency (seconds)",
    buckets=[0.1, 0.3, 0.5, 1, 2, 5, 10, 20, 30, 60],
    labelnames=["provider"],
)

invocations_total = Counter(
    "jd_invocations_total",
    "Resilient invocations by final outcome",
    labelnames=["outcome"],
)

cooldown_short_circuits_total = Counter(
    "jd_cooldown_short_circuits_total",
    "Invocations refused because a rate-limit cooldown was active",
)

classifications_total = Counter(
    "jd_classifications_total",
    "Input classifications by detected mode",
    labelnames=["mode"],
)

draft_transitions_total = Counter(
    "jd_draft_transitions_total",
    "Draft lifecycle transitions by target status",
    labelnames=["status"],
)


def maybe_start_metrics(*, enable: bool, bind: str, port: int) -> None:
    if not enable:
        return
    start_http_server(port, addr=bind)
