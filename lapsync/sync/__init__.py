"""
Replication between a device's local store and the remote event API.

This module provides:
- SyncEngine: push/pull loops with an in-flight guard and a pull watermark
- HttpSyncClient: urllib transport with Bearer pairing-token auth
- Wire models: camelCase request and response shapes (pydantic)
"""

from .client import HttpSyncClient, TransportResponse
from .engine import PullResult, PushResult, SyncEngine
from .models import IngestRequest, IngestResponse, PullResponse, WireEvent

__all__ = [
    "HttpSyncClient",
    "TransportResponse",
    "PullResult",
    "PushResult",
    "SyncEngine",
    "IngestRequest",
    "IngestResponse",
    "PullResponse",
    "WireEvent",
]
