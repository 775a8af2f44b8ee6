"""
Deterministic query helpers over a session's event log.

Every runner is derived from its own events plus the session-wide CLEAR_ALL
events; the reserved GLOBAL runner only carries session-wide facts and is
never summarised itself.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .core.events import CLEAR_ALL, START, START_SET, UNDO
from .core.state import RunnerDerivedState
from .core.templates import Flag, RunTemplateConfig, resolve_config
from .log.records import GLOBAL_RUNNER_ID, EventRecord, SessionRecord
from .replay.effective import effective_events
from .replay.runner import replay


@dataclass(frozen=True)
class RunnerSummary:
    runner_id: str
    lap_count: int
    finished: bool
    flags: Tuple[Flag, ...]
    started_at_ms: Optional[int] = None
    finished_at_ms: Optional[int] = None
    last_seen_at_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "runner_id": self.runner_id,
            "lap_count": self.lap_count,
            "finished": self.finished,
            "flags": [f.value for f in self.flags],
            "started_at_ms": self.started_at_ms,
            "finished_at_ms": self.finished_at_ms,
            "last_seen_at_ms": self.last_seen_at_ms,
        }


def session_config(session: SessionRecord) -> RunTemplateConfig:
    return resolve_config(
        session.template_key,
        session.laps_required,
        enforcement=session.enforcement,
        scan_gap_ms=session.scan_gap_ms,
    )


def natural_key(runner_id: str) -> Tuple:
    """Sort key that orders "2" before "10" and "A4" before "A10"."""
    parts = re.split(r"(\d+)", runner_id.lower())
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts if p)


def latest_clear_all_ms(records: Iterable[EventRecord]) -> int:
    return max((r.captured_at_ms for r in records if r.type == CLEAR_ALL), default=0)


def global_start_ms(records: Iterable[EventRecord]) -> Optional[int]:
    """Earliest effective START_SET at the START station."""
    starts = [
        r.captured_at_ms
        for r in effective_events(list(records))
        if r.type == START_SET and r.station_id == START
    ]
    return min(starts) if starts else None


def runner_streams(records: Iterable[EventRecord]) -> Dict[str, List[EventRecord]]:
    """
    Group a session's records per runner, each with the session-wide resets.
    """
    records = list(records)
    clear_all = [r for r in records if r.type == CLEAR_ALL]
    streams: Dict[str, Dict[str, EventRecord]] = {}
    for r in records:
        if not r.runner_id or r.runner_id == GLOBAL_RUNNER_ID:
            continue
        stream = streams.setdefault(r.runner_id, {c.id: c for c in clear_all})
        stream[r.id] = r
    return {runner_id: list(by_id.values()) for runner_id, by_id in streams.items()}


def runner_state(
    records: Iterable[EventRecord], runner_id: str, config: RunTemplateConfig
) -> RunnerDerivedState:
    records = list(records)
    stream = {r.id: r for r in records if r.type == CLEAR_ALL}
    stream.update({r.id: r for r in records if r.runner_id == runner_id})
    return replay([r.to_run_event() for r in stream.values()], config).state


def build_runner_states(
    records: Iterable[EventRecord], config: RunTemplateConfig
) -> Dict[str, RunnerDerivedState]:
    return {
        runner_id: replay([r.to_run_event() for r in stream], config).state
        for runner_id, stream in runner_streams(records).items()
    }


def build_summaries(records: Iterable[EventRecord], config: RunTemplateConfig) -> List[RunnerSummary]:
    summaries = []
    for runner_id, stream in runner_streams(records).items():
        state = replay([r.to_run_event() for r in stream], config).state
        effective = effective_events(stream)
        summaries.append(
            RunnerSummary(
                runner_id=runner_id,
                lap_count=state.lap_count,
                finished=state.finished,
                flags=state.flags,
                started_at_ms=state.started_at_ms,
                finished_at_ms=state.finished_at_ms,
                last_seen_at_ms=max(
                    (r.captured_at_ms for r in effective if r.type != UNDO), default=None
                ),
            )
        )
    summaries.sort(key=lambda s: natural_key(s.runner_id))
    return summaries
