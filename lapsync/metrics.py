"""
Prometheus metrics for capture and sync.

Exposes sync health via an HTTP /metrics endpoint for Prometheus scraping.
Metrics are created by init_metrics(); until then every track_* helper is a
no-op, so library users and tests pay nothing.

Environment Variables:
    LAPSYNC_METRICS_ENABLED: Enable metrics server (true/false) - default: false
    LAPSYNC_METRICS_PORT: HTTP port for /metrics endpoint - default: 9108

Usage:
    from lapsync.metrics import start_metrics_server, track_push

    start_metrics_server(enabled=True, port=9108)
    track_push(accepted=3, failed=1)
"""

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

EVENTS_RECORDED: Optional[Counter] = None
EVENTS_PUSHED: Optional[Counter] = None
EVENTS_PULLED: Optional[Counter] = None
SYNC_FAILURES: Optional[Counter] = None
SESSION_RESETS: Optional[Counter] = None
SYNC_TICK_DURATION: Optional[Histogram] = None

_metrics_initialized = False
_metrics_lock = threading.Lock()


def init_metrics() -> None:
    """
    Initialize Prometheus metrics (call once at startup).

    Thread-safe via module-level lock; repeated calls are no-ops.
    """
    global EVENTS_RECORDED, EVENTS_PUSHED, EVENTS_PULLED, SYNC_FAILURES
    global SESSION_RESETS, SYNC_TICK_DURATION, _metrics_initialized

    with _metrics_lock:
        if _metrics_initialized:
            return

        EVENTS_RECORDED = Counter(
            "lapsync_events_recorded_total",
            "Events appended to the local store by capture actions",
            labelnames=["event_type"],
        )

        # result: accepted, failed
        EVENTS_PUSHED = Counter(
            "lapsync_events_pushed_total",
            "Events submitted to the remote ingestion endpoint",
            labelnames=["result"],
        )

        EVENTS_PULLED = Counter(
            "lapsync_events_pulled_total",
            "Remote events merged into the local store",
        )

        # direction: push, pull; reason: transport, http, config
        SYNC_FAILURES = Counter(
            "lapsync_sync_failures_total",
            "Sync ticks that accomplished nothing because of an error",
            labelnames=["direction", "reason"],
        )

        SESSION_RESETS = Counter(
            "lapsync_session_resets_total",
            "Local session logs wiped by a newer remote CLEAR_ALL",
        )

        SYNC_TICK_DURATION = Histogram(
            "lapsync_sync_tick_duration_seconds",
            "Duration of push and pull ticks in seconds",
            labelnames=["direction"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        _metrics_initialized = True
        logger.info("Prometheus metrics initialized")


def start_metrics_server(enabled: bool, port: int) -> None:
    """
    Start Prometheus metrics HTTP server in a background thread.

    Side Effects:
        - Starts HTTP server in daemon thread (does not block)
        - Initializes metrics registry if not already initialized
    """
    if not enabled:
        logger.info("Metrics server disabled (LAPSYNC_METRICS_ENABLED=false)")
        return

    init_metrics()

    try:
        start_http_server(port, addr="0.0.0.0")
        logger.info(f"Metrics server started on http://0.0.0.0:{port}/metrics")
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")


@contextmanager
def track_tick(direction: str) -> Generator[None, None, None]:
    if SYNC_TICK_DURATION is None:
        yield
        return

    with SYNC_TICK_DURATION.labels(direction=direction).time():
        yield


def track_recorded(event_type: str) -> None:
    if EVENTS_RECORDED is not None:
        EVENTS_RECORDED.labels(event_type=event_type).inc()


def track_push(accepted: int, failed: int) -> None:
    if EVENTS_PUSHED is None:
        return
    if accepted:
        EVENTS_PUSHED.labels(result="accepted").inc(accepted)
    if failed:
        EVENTS_PUSHED.labels(result="failed").inc(failed)


def track_pull(applied: int, reset: bool) -> None:
    if EVENTS_PULLED is not None and applied:
        EVENTS_PULLED.inc(applied)
    if SESSION_RESETS is not None and reset:
        SESSION_RESETS.inc()


def track_failure(direction: str, reason: str) -> None:
    if SYNC_FAILURES is not None:
        SYNC_FAILURES.labels(direction=direction, reason=reason).inc()
