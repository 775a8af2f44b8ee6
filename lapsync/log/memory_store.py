"""
In-memory event store.

Every mutation goes through _commit() as a journal entry (op, data), which is
applied to the in-memory maps. FileEventStore reuses the same entries as its
on-disk format.
"""

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.errors import EventStoreError, SessionNotFoundError
from .records import ORIGIN_REMOTE, EventRecord, SessionRecord
from .store import EventStore

OP_SESSION = "session"
OP_SESSION_DELETE = "session_delete"
OP_EVENT = "event"
OP_EVENTS_CLEAR = "events_clear"

JournalEntry = Tuple[str, Dict[str, Any]]


class MemoryEventStore(EventStore):
    def __init__(self) -> None:
        self._sessions: Dict[str, SessionRecord] = {}
        self._events: Dict[str, EventRecord] = {}

    def _refresh(self) -> None:
        """Pick up writes made outside this instance. No-op in memory."""

    def _write(self, entries: List[JournalEntry]) -> None:
        """Persist entries before they are applied. No-op in memory."""

    def _apply(self, op: str, data: Dict[str, Any]) -> None:
        if op == OP_SESSION:
            session = SessionRecord.from_dict(data)
            self._sessions[session.id] = session
        elif op == OP_SESSION_DELETE:
            self._sessions.pop(data["id"], None)
            self._drop_events(data["id"])
        elif op == OP_EVENT:
            event = EventRecord.from_dict(data)
            self._events[event.id] = event
        elif op == OP_EVENTS_CLEAR:
            self._drop_events(data["session_id"])
        else:
            raise EventStoreError(f"unknown journal op: {op}")

    def _commit(self, entries: List[JournalEntry]) -> None:
        if not entries:
            return
        self._write(entries)
        for op, data in entries:
            self._apply(op, data)

    def _drop_events(self, session_id: str) -> None:
        for event_id in [k for k, e in self._events.items() if e.session_id == session_id]:
            del self._events[event_id]

    # Sessions

    def put_session(self, session: SessionRecord) -> SessionRecord:
        self._refresh()
        self._commit([(OP_SESSION, session.to_dict())])
        return session

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        self._refresh()
        return self._sessions.get(session_id)

    def list_sessions(self) -> List[SessionRecord]:
        self._refresh()
        return sorted(self._sessions.values(), key=lambda s: (s.created_at_ms, s.id), reverse=True)

    def delete_session(self, session_id: str) -> None:
        self._refresh()
        self._commit([(OP_SESSION_DELETE, {"id": session_id})])

    def update_session_global_start(self, session_id: str, global_start_ms: int) -> SessionRecord:
        self._refresh()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"session not found: {session_id}")
        updated = replace(session, global_start_ms=global_start_ms)
        self._commit([(OP_SESSION, updated.to_dict())])
        return updated

    # Events

    def add_event(self, event: EventRecord) -> EventRecord:
        self._refresh()
        if event.id in self._events:
            raise EventStoreError(f"event already exists: {event.id}")
        self._commit([(OP_EVENT, event.to_dict())])
        return event

    def get_event(self, event_id: str) -> Optional[EventRecord]:
        self._refresh()
        return self._events.get(event_id)

    def list_events_for_session(self, session_id: str) -> List[EventRecord]:
        self._refresh()
        events = [e for e in self._events.values() if e.session_id == session_id]
        events.sort(key=lambda e: (e.captured_at_ms, e.id))
        return events

    def mark_events_synced(self, event_ids: Iterable[str], synced_at_ms: int) -> int:
        self._refresh()
        entries = []
        for event_id in dict.fromkeys(event_ids):
            existing = self._events.get(event_id)
            if existing is None:
                continue
            entries.append((OP_EVENT, replace(existing, synced_at_ms=synced_at_ms).to_dict()))
        self._commit(entries)
        return len(entries)

    def upsert_remote_events(self, session_id: str, events: Iterable[EventRecord]) -> int:
        self._refresh()
        entries = []
        for event in events:
            existing = self._events.get(event.id)
            if existing is None:
                merged = replace(event, session_id=session_id, origin=event.origin or ORIGIN_REMOTE)
            else:
                merged = replace(
                    event,
                    session_id=session_id,
                    synced_at_ms=(
                        event.synced_at_ms if event.synced_at_ms is not None else existing.synced_at_ms
                    ),
                    origin=existing.origin,
                )
            entries.append((OP_EVENT, merged.to_dict()))
        self._commit(entries)
        return len(entries)

    def clear_session_events(self, session_id: str) -> None:
        self._refresh()
        self._commit([(OP_EVENTS_CLEAR, {"session_id": session_id})])
