"""Prometheus metrics for assistant requests."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

ASSISTANT_REQUEST_COUNT = Counter(
    "assistant_requests_total",
    "Total assistant requests",
    ["mode", "streaming", "outcome"],
)
ASSISTANT_REQUEST_LATENCY = Histogram(
    "assistant_request_duration_seconds",
    "Assistant request duration in seconds",
    ["mode", "streaming"],
)
ASSISTANT_REQUEST_IN_PROGRESS = Gauge(
    "assistant_requests_in_progress",
    "In-progress assistant requests",
)
ASSISTANT_STREAM_CHUNKS = Counter(
    "assistant_stream_chunks_total",
    "Stream chunks applied to conversation messages",
    ["type"],
)


def render_metrics() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST
