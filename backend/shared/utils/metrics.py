"""
Lightweight metrics collection for the Cricket Live relay.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
UPSTREAM_REQUESTS = Counter(
    "cl_upstream_requests_total",
    "Total provider HTTP requests",
    ["method", "status"],
)
WS_MESSAGES = Counter(
    "cl_ws_messages_total",
    "Total WebSocket messages",
    ["direction"],
)
FANOUT_PUBLISHES = Counter(
    "cl_fanout_publishes_total",
    "Broadcasts attempted per topic kind",
    ["topic_kind", "event"],
)
LIVE_SET_CHANGES = Counter(
    "cl_live_set_changes_total",
    "Live-set reconciliation events",
    ["kind"],
)
POLL_RETRIES = Counter(
    "cl_poll_retries_total",
    "Retries scheduled after a failed upstream fetch",
    ["job"],
)
POLL_GIVE_UPS = Counter(
    "cl_poll_give_ups_total",
    "Fetches abandoned for the current cycle after exhausting retries",
    ["job"],
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "cl_upstream_latency_seconds",
    "Provider request latency in seconds",
    ["method"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
POLL_CYCLE = Histogram(
    "cl_poll_cycle_seconds",
    "Duration of a single scheduler tick body",
    ["job"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
WS_CONNECTIONS = Gauge(
    "cl_ws_connections_active",
    "Currently active WebSocket connections",
)
LIVE_MATCHES = Gauge(
    "cl_live_matches",
    "Number of matches currently in the live set",
)
CACHED_SUMMARIES = Gauge(
    "cl_cached_summaries",
    "Number of match summaries in the latest list batch",
)


def topic_kind(topic: str) -> str:
    """Collapse per-match topics into one label value."""
    return "match" if topic.startswith("match_") and topic != "match_list" else topic


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        histogram.labels(**labels).observe(elapsed)


def start_metrics_server(port: int | None = None, settings: Settings | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = settings or get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
