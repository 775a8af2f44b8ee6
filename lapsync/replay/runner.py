"""
Replay runner: reconstruct runner state from an event collection.

Replay is pure: filter retractions, order by capture time, fold.
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from ..core.canonical import canonical_json_bytes
from ..core.events import RunEvent
from ..core.reducer import fold_events
from ..core.state import RunnerDerivedState
from ..core.templates import RunTemplateConfig
from .effective import effective_events, replay_order


@dataclass(frozen=True)
class ReplayResult:
    """
    Result of replay operation.

    Fields:
        state: Final runner state after folding the effective events
        applied: Number of events folded (UNDO markers included)
    """
    state: RunnerDerivedState
    applied: int


def replay(
    events: Iterable[RunEvent],
    config: RunTemplateConfig,
    to_ms: Optional[int] = None,
) -> ReplayResult:
    """
    Replay events to reconstruct a runner's state.

    Same effective event set always produces the same state, whatever order
    the events were appended or received in.

    Args:
        events: Events of one runner (plus any session-wide resets)
        config: Resolved template configuration
        to_ms: Only fold events captured at or before this time (None = all)

    Returns:
        ReplayResult with final state and count
    """
    ordered = replay_order(effective_events(list(events)))
    if to_ms is not None:
        ordered = [ev for ev in ordered if ev.captured_at_ms <= to_ms]
    return ReplayResult(state=fold_events(ordered, config), applied=len(ordered))


def compute_state_hash(obj: Any) -> str:
    """
    SHA-256 of the canonical JSON of derived state.

    Accepts a RunnerDerivedState or any structure of them (e.g. a
    runner_id -> state mapping).
    """
    return hashlib.sha256(canonical_json_bytes(_plain(obj))).hexdigest()


def _plain(obj: Any) -> Any:
    if isinstance(obj, RunnerDerivedState):
        return obj.to_dict()
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    return obj
