"""
Derived runner state.

Never persisted as a source of truth: it is always re-derivable by folding the
effective event log through the reducer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .templates import Flag


@dataclass(frozen=True)
class RunnerDerivedState:
    """
    Immutable per-runner state.

    Fields:
        started_at_ms: Start time, once established
        finished_at_ms: Finish time, once established
        lap_count: Counted laps (>= 0)
        flags: Raised flags in the order they first appeared
        last_seen_ms_at_station: Last accepted capture time per station
        checkpoints_seen: Checkpoints visited during the current lap
    """
    started_at_ms: Optional[int] = None
    finished_at_ms: Optional[int] = None
    lap_count: int = 0
    flags: Tuple[Flag, ...] = ()
    last_seen_ms_at_station: Dict[str, int] = field(default_factory=dict)
    checkpoints_seen: Dict[str, bool] = field(default_factory=dict)

    @staticmethod
    def initial() -> "RunnerDerivedState":
        return RunnerDerivedState()

    @property
    def finished(self) -> bool:
        return self.finished_at_ms is not None

    def has_flag(self, flag: Flag) -> bool:
        return flag in self.flags

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at_ms": self.started_at_ms,
            "finished_at_ms": self.finished_at_ms,
            "lap_count": self.lap_count,
            "flags": [f.value for f in self.flags],
            "last_seen_ms_at_station": dict(self.last_seen_ms_at_station),
            "checkpoints_seen": dict(self.checkpoints_seen),
        }
