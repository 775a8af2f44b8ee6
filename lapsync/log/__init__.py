"""
Local event storage.

This module provides:
- EventStore: Abstract interface for session and event persistence
- MemoryEventStore: Dict-backed store (tests, ephemeral use)
- FileEventStore: Append-only JSONL journal
- SessionRecord / EventRecord: Persisted record shapes
"""

from .records import (
    GLOBAL_RUNNER_ID,
    ORIGIN_LOCAL,
    ORIGIN_REMOTE,
    RUNNER_FORMAT_CLASS_INDEX,
    RUNNER_FORMAT_NUMERIC,
    EventRecord,
    SessionRecord,
)
from .store import EventStore
from .memory_store import MemoryEventStore
from .file_store import FileEventStore

__all__ = [
    "GLOBAL_RUNNER_ID",
    "ORIGIN_LOCAL",
    "ORIGIN_REMOTE",
    "RUNNER_FORMAT_CLASS_INDEX",
    "RUNNER_FORMAT_NUMERIC",
    "EventRecord",
    "SessionRecord",
    "EventStore",
    "MemoryEventStore",
    "FileEventStore",
]
