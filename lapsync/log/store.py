"""
EventStore abstract interface.

Defines the local store contract consumed by capture, replay and sync.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .records import EventRecord, SessionRecord


class EventStore(ABC):
    """
    Abstract local store for sessions and their event logs.

    All implementations must guarantee:
    - Events are keyed by id; writing the same id twice never duplicates it
    - Logical events are never edited, only their sync bookkeeping
    - Reads return records ordered by capture time
    """

    # Sessions

    @abstractmethod
    def put_session(self, session: SessionRecord) -> SessionRecord:
        """Insert or replace a session record."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    def list_sessions(self) -> List[SessionRecord]:
        """Sessions, newest first."""
        ...

    @abstractmethod
    def delete_session(self, session_id: str) -> None:
        """Delete a session and every event recorded for it."""
        ...

    @abstractmethod
    def update_session_global_start(self, session_id: str, global_start_ms: int) -> SessionRecord:
        """
        Record the session's global start time.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        ...

    # Events

    @abstractmethod
    def add_event(self, event: EventRecord) -> EventRecord:
        """
        Insert a new event.

        Raises:
            EventStoreError: If an event with the same id already exists
        """
        ...

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[EventRecord]:
        ...

    @abstractmethod
    def list_events_for_session(self, session_id: str) -> List[EventRecord]:
        """All events of a session, capture time ascending."""
        ...

    def list_events_for_runner(self, session_id: str, runner_id: str) -> List[EventRecord]:
        return [e for e in self.list_events_for_session(session_id) if e.runner_id == runner_id]

    def list_recent_events(self, session_id: str, limit: int) -> List[EventRecord]:
        """Newest events of a session first."""
        events = self.list_events_for_session(session_id)
        return list(reversed(events))[:limit]

    def list_unsynced_events(self, session_id: str) -> List[EventRecord]:
        return [e for e in self.list_events_for_session(session_id) if not e.synced]

    @abstractmethod
    def mark_events_synced(self, event_ids: Iterable[str], synced_at_ms: int) -> int:
        """
        Stamp known events as synced. Unknown ids are ignored.

        Returns:
            Number of events stamped
        """
        ...

    @abstractmethod
    def upsert_remote_events(self, session_id: str, events: Iterable[EventRecord]) -> int:
        """
        Merge events received from the remote by id.

        An event already present keeps its origin, and keeps its sync time when
        the incoming record carries none. New events are stored as given.

        Returns:
            Number of records written
        """
        ...

    @abstractmethod
    def clear_session_events(self, session_id: str) -> None:
        """Delete every event of a session (the session itself stays)."""
        ...
