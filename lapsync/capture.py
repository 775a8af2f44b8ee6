"""
Station capture: the write side of a scanning device.

A StationCapture is bound to one session and one station. It normalises runner
ids, refuses scans the reducer would ignore anyway (debounce, runner already
done) and appends SCAN, UNDO, CLEAR, CLEAR_ALL and START_SET events to the
local store. Nothing here talks to the network; sync picks up the new rows.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .core.clock import SystemClock
from .core.errors import InvalidRunnerIdError, SessionNotFoundError
from .core.events import (
    CLEAR,
    CLEAR_ALL,
    LAP_END,
    SCAN,
    START,
    START_SET,
    STATIONS,
    UNDO,
    normalize_event_type,
)
from .core.ids import new_id
from .core.state import RunnerDerivedState
from .core.templates import RunTemplateConfig
from .log.records import (
    GLOBAL_RUNNER_ID,
    ORIGIN_REMOTE,
    RUNNER_FORMAT_NUMERIC,
    EventRecord,
    SessionRecord,
)
from .log.store import EventStore
from .logging_config import get_logger
from .metrics import track_recorded
from .query import runner_state, session_config
from .replay.effective import effective_events

RECORDED = "recorded"
DEBOUNCED = "debounced"
ALREADY_FINISHED = "already_finished"

_NUMERIC_RE = re.compile(r"^\d+$")
_CLASS_INDEX_RE = re.compile(r"^[a-zA-Z][0-9]+$")


def normalize_runner_id(value: str, fmt: str = RUNNER_FORMAT_NUMERIC) -> str:
    """
    Normalise a typed or scanned runner id.

    numeric: digits only, leading zeros stripped ("007" -> "7", "000" -> "0").
    classIndex: one letter followed by digits, letter upper-cased ("a04" -> "A04").

    Raises:
        InvalidRunnerIdError: If the value does not match the format
    """
    trimmed = (value or "").strip()
    if not trimmed:
        raise InvalidRunnerIdError("empty runner id")

    if fmt == RUNNER_FORMAT_NUMERIC:
        if not _NUMERIC_RE.match(trimmed):
            raise InvalidRunnerIdError(f"invalid runner id {trimmed!r}: numbers only")
        return trimmed.lstrip("0") or "0"

    if _CLASS_INDEX_RE.match(trimmed):
        return trimmed[0].upper() + trimmed[1:]
    raise InvalidRunnerIdError(f"invalid runner id {trimmed!r}: use A04, B10 format")


@dataclass(frozen=True)
class ScanOutcome:
    status: str
    runner_id: str
    event: Optional[EventRecord] = None

    @property
    def recorded(self) -> bool:
        return self.status == RECORDED


class StationCapture:
    def __init__(self, store: EventStore, session_id: str, station_id: str, clock=None) -> None:
        if station_id not in STATIONS:
            raise ValueError(f"unknown station: {station_id}")
        self.store = store
        self.session_id = session_id
        self.station_id = station_id
        self.clock = clock or SystemClock()
        self.logger = get_logger(__name__, session_id=session_id)

    def load_session(self) -> SessionRecord:
        session = self.store.get_session(self.session_id)
        if session is None:
            raise SessionNotFoundError(f"session not found: {self.session_id}")
        return session

    @property
    def config(self) -> RunTemplateConfig:
        return session_config(self.load_session())

    def _append(
        self,
        runner_id: str,
        event_type: str,
        station_id: Optional[str] = None,
        ref_event_id: Optional[str] = None,
    ) -> EventRecord:
        record = EventRecord(
            id=new_id(),
            session_id=self.session_id,
            runner_id=runner_id,
            station_id=station_id or self.station_id,
            type=event_type,
            captured_at_ms=self.clock.now_ms(),
            ref_event_id=ref_event_id,
        )
        self.store.add_event(record)
        track_recorded(event_type)
        return record

    def runner_state(self, runner_id: str) -> RunnerDerivedState:
        records = self.store.list_events_for_session(self.session_id)
        return runner_state(records, runner_id, self.config)

    def record_scan(self, raw_runner_id: str, force: bool = False) -> ScanOutcome:
        """
        Record a runner passing this station.

        The scan is refused, and nothing is written, when the runner was seen
        here within the station's debounce gap (unless force is set), or when
        it is a LAP_END scan for a runner who already has the required laps.
        """
        session = self.load_session()
        runner_id = normalize_runner_id(raw_runner_id, session.runner_id_format)
        config = session_config(session)
        state = runner_state(self.store.list_events_for_session(self.session_id), runner_id, config)

        now_ms = self.clock.now_ms()
        last_seen = state.last_seen_ms_at_station.get(self.station_id)
        if not force and last_seen is not None and now_ms - last_seen < config.gap_ms(self.station_id):
            self.logger.info(
                "Scan debounced",
                extra={"runner_id": runner_id, "station_id": self.station_id},
            )
            return ScanOutcome(DEBOUNCED, runner_id)

        if self.station_id == LAP_END and state.lap_count >= session.laps_required:
            self.logger.info("Runner already finished", extra={"runner_id": runner_id})
            return ScanOutcome(ALREADY_FINISHED, runner_id)

        record = self._append(runner_id, SCAN)
        self.logger.debug("Scan recorded", extra={"runner_id": runner_id, "event_id": record.id})
        return ScanOutcome(RECORDED, runner_id, record)

    def undo_last(self, raw_runner_id: str) -> Optional[EventRecord]:
        """Retract the newest local scan of a runner at this station."""
        runner_id = normalize_runner_id(raw_runner_id, self.load_session().runner_id_format)
        candidates = [
            r
            for r in self.store.list_events_for_runner(self.session_id, runner_id)
            if r.origin != ORIGIN_REMOTE and r.station_id == self.station_id
            and normalize_event_type(r.type) in (SCAN, UNDO)
        ]
        scans = [r for r in effective_events(candidates) if normalize_event_type(r.type) == SCAN]
        if not scans:
            return None
        last = max(scans, key=lambda r: (r.captured_at_ms, r.id))
        record = self._append(runner_id, UNDO, station_id=last.station_id, ref_event_id=last.id)
        self.logger.info("Scan undone", extra={"runner_id": runner_id, "ref_event_id": last.id})
        return record

    def clear_runner(self, raw_runner_id: str) -> EventRecord:
        runner_id = normalize_runner_id(raw_runner_id, self.load_session().runner_id_format)
        record = self._append(runner_id, CLEAR)
        self.logger.info("Runner cleared", extra={"runner_id": runner_id})
        return record

    def reset_session(self) -> EventRecord:
        """Wipe the local session log and record a session-wide CLEAR_ALL."""
        self.load_session()
        self.store.clear_session_events(self.session_id)
        record = self._append(GLOBAL_RUNNER_ID, CLEAR_ALL)
        self.logger.warning("Session reset", extra={"event_id": record.id})
        return record

    def global_start(self) -> EventRecord:
        """Record the mass start for the whole session."""
        self.load_session()
        record = self._append(GLOBAL_RUNNER_ID, START_SET, station_id=START)
        self.store.update_session_global_start(self.session_id, record.captured_at_ms)
        self.logger.info("Global start recorded", extra={"global_start_ms": record.captured_at_ms})
        return record
