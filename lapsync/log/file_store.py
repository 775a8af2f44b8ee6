"""
File-based event store using an append-only JSONL journal.

Each line is one journal entry: {"op": "...", "data": {...}}. Opening the
store replays the journal; later writes from other processes are picked up
incrementally before every read.
"""

import json
import os
from typing import List

from ..core.canonical import canonical_json_str
from ..core.errors import EventStoreError
from .memory_store import OP_EVENT, OP_SESSION, JournalEntry, MemoryEventStore

try:
    import fcntl
except ImportError:  # Windows or unsupported platform
    fcntl = None


class FileEventStore(MemoryEventStore):
    """
    File-backed local store.

    Storage format: JSONL (newline-delimited JSON), one journal entry per line.

    Guarantees:
    - Append-only between compactions
    - Fsync after each batch of entries (durability)
    - Advisory exclusive lock while appending, where fcntl is available
    """

    def __init__(self, path: str) -> None:
        """
        Initialize file event store.

        Args:
            path: Path to JSONL journal
        """
        super().__init__()
        self.path = path
        self._offset = 0
        self._inode = None

        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

        if not os.path.exists(path):
            with open(path, "wb") as f:
                f.write(b"")

        self._refresh()

    def _reset_view(self) -> None:
        self._sessions.clear()
        self._events.clear()
        self._offset = 0

    def _consume(self, f) -> None:
        """Apply complete lines from the current offset to EOF."""
        f.seek(self._offset)
        for line in f:
            if not line.endswith(b"\n"):
                # Partial write in progress; re-read it next time.
                break
            self._offset += len(line)
            if not line.strip():
                continue
            try:
                rec = json.loads(line)
                self._apply(rec["op"], rec["data"])
            except (ValueError, KeyError, TypeError) as ex:
                raise EventStoreError(f"corrupt journal line at byte {self._offset}: {ex}") from ex

    def _refresh(self) -> None:
        try:
            st = os.stat(self.path)
        except OSError as ex:
            raise EventStoreError(str(ex)) from ex

        if st.st_ino != self._inode or st.st_size < self._offset:
            # Replaced by a compaction (or truncated): rebuild from scratch.
            self._reset_view()
            self._inode = st.st_ino
        if st.st_size == self._offset:
            return

        try:
            with open(self.path, "rb") as f:
                self._consume(f)
        except OSError as ex:
            raise EventStoreError(str(ex)) from ex

    def _write(self, entries: List[JournalEntry]) -> None:
        payload = "".join(
            canonical_json_str({"op": op, "data": data}) + "\n" for op, data in entries
        ).encode("utf-8")
        try:
            with open(self.path, "a+b") as f:
                if fcntl:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    # Entries appended by other writers land before ours.
                    self._consume(f)
                    if f.seek(0, os.SEEK_END) > self._offset:
                        # Torn tail from a writer that died mid-append.
                        f.truncate(self._offset)
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                    self._offset = f.tell()
                finally:
                    if fcntl:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as ex:
            raise EventStoreError(str(ex)) from ex

    def compact(self) -> int:
        """
        Rewrite the journal with one entry per live session and event.

        The new journal is written beside the old one and swapped in with
        os.replace, so readers never observe a half-written file.

        Returns:
            Number of entries in the compacted journal
        """
        self._refresh()
        entries = [(OP_SESSION, s.to_dict()) for s in sorted(self._sessions.values(), key=lambda s: s.id)]
        events = sorted(self._events.values(), key=lambda e: (e.session_id, e.captured_at_ms, e.id))
        entries.extend((OP_EVENT, e.to_dict()) for e in events)

        tmp_path = f"{self.path}.compact"
        try:
            with open(tmp_path, "wb") as f:
                for op, data in entries:
                    f.write((canonical_json_str({"op": op, "data": data}) + "\n").encode("utf-8"))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as ex:
            raise EventStoreError(str(ex)) from ex

        self._reset_view()
        self._inode = None
        self._refresh()
        return len(entries)
