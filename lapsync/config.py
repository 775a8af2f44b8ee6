"""
Runtime settings read from the environment.

Environment Variables:
    LAPSYNC_BASE_URL: Remote API base (ingest at /events/ingest, pull at /events)
    LAPSYNC_STORE_PATH: JSONL journal of the local store
    LAPSYNC_SYNC_INTERVAL_SECONDS: Push/pull tick interval - default: 5
    LAPSYNC_HTTP_TIMEOUT_SECONDS: Per-request timeout - default: 10
    LAPSYNC_METRICS_ENABLED: Start the Prometheus endpoint (true/false) - default: false
    LAPSYNC_METRICS_PORT: Prometheus endpoint port - default: 9108
"""

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "http://localhost:3000/api/run"
DEFAULT_STORE_PATH = "/tmp/lapsync/store.jsonl"
DEFAULT_SYNC_INTERVAL_SECONDS = 5.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0
DEFAULT_METRICS_PORT = 9108


def _env_float(key: str, default: float) -> float:
    val = os.getenv(key)
    if not val:
        return default
    try:
        parsed = float(val)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _env_int(key: str, default: int) -> int:
    val = os.getenv(key)
    if not val:
        return default
    try:
        parsed = int(val)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


@dataclass
class Settings:
    base_url: str
    store_path: str
    sync_interval_seconds: float
    http_timeout_seconds: float
    metrics_enabled: bool
    metrics_port: int

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            base_url=os.getenv("LAPSYNC_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            store_path=os.getenv("LAPSYNC_STORE_PATH", DEFAULT_STORE_PATH),
            sync_interval_seconds=_env_float(
                "LAPSYNC_SYNC_INTERVAL_SECONDS", DEFAULT_SYNC_INTERVAL_SECONDS
            ),
            http_timeout_seconds=_env_float(
                "LAPSYNC_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS
            ),
            metrics_enabled=os.getenv("LAPSYNC_METRICS_ENABLED", "false").lower() == "true",
            metrics_port=_env_int("LAPSYNC_METRICS_PORT", DEFAULT_METRICS_PORT),
        )
