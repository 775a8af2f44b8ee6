"""
Reducer: pure per-runner state transitions.

The reducer is the heart of lap counting. It must be:
- Pure (no side effects, no I/O)
- Deterministic (same input -> same output)
- Total (never raises; malformed events are no-ops)

Retraction happens upstream (see lapsync.replay.effective), so UNDO events
are inert here.
"""

from dataclasses import replace
from numbers import Real
from typing import Iterable, Optional

from .events import FINISH, LAP_END, LAP_START, SCAN, START, START_SET, RunEvent
from .state import RunnerDerivedState
from .templates import FinishRule, Flag, RunTemplateConfig, StartRule


def _add_flag(state: RunnerDerivedState, flag: Flag) -> RunnerDerivedState:
    if flag in state.flags:
        return state
    return replace(state, flags=state.flags + (flag,))


def _reset_checkpoints(state: RunnerDerivedState, config: RunTemplateConfig) -> RunnerDerivedState:
    seen = dict(state.checkpoints_seen)
    for station_id in config.checkpoints:
        seen[station_id] = False
    return replace(state, checkpoints_seen=seen)


def _mark_checkpoint(state: RunnerDerivedState, station_id: str) -> RunnerDerivedState:
    seen = dict(state.checkpoints_seen)
    seen[station_id] = True
    return replace(state, checkpoints_seen=seen)


def _missing_checkpoints(state: RunnerDerivedState, config: RunTemplateConfig) -> bool:
    return any(not state.checkpoints_seen.get(s) for s in config.checkpoints)


def _is_well_formed(event: RunEvent) -> bool:
    ts = getattr(event, "captured_at_ms", None)
    if isinstance(ts, bool) or not isinstance(ts, Real):
        return False
    return isinstance(getattr(event, "type", None), str)


def apply_event(
    state: RunnerDerivedState, event: RunEvent, config: RunTemplateConfig
) -> RunnerDerivedState:
    """
    Fold one event into a runner's state.

    Args:
        state: Current runner state
        event: Event to apply (already filtered for retractions)
        config: Resolved template configuration

    Returns:
        New state; the input state is never mutated
    """
    if not _is_well_formed(event):
        return state

    if event.is_undo:
        return state

    global_start = config.start_rule == StartRule.GLOBAL_START

    if event.is_reset:
        reset = RunnerDerivedState.initial()
        if global_start and config.global_start_ms is not None:
            return replace(reset, started_at_ms=config.global_start_ms)
        return reset

    next_state = state

    # GLOBAL_START takes the configured start time; START_SET events are not consulted.
    if global_start and next_state.started_at_ms is None and config.global_start_ms is not None:
        next_state = replace(next_state, started_at_ms=config.global_start_ms)

    station_id = event.station_id
    if not station_id:
        return next_state

    captured_at_ms = event.captured_at_ms

    # Gap is measured from the last accepted scan; a rejected scan leaves no trace.
    last_seen = next_state.last_seen_ms_at_station.get(station_id)
    if last_seen is not None and captured_at_ms - last_seen < config.gap_ms(station_id):
        return next_state

    last_seen_map = dict(next_state.last_seen_ms_at_station)
    last_seen_map[station_id] = captured_at_ms
    next_state = replace(next_state, last_seen_ms_at_station=last_seen_map)

    uses_lap_start = config.uses_lap_start
    started_now = False
    if not global_start and next_state.started_at_ms is None:
        # Start on LAP_START when the topology has one, otherwise on the first LAP_END.
        if station_id == LAP_START or (not uses_lap_start and station_id == LAP_END):
            next_state = replace(next_state, started_at_ms=captured_at_ms)
            started_now = True

    if event.type not in (SCAN, START_SET):
        return next_state

    if event.type == START_SET and station_id == START:
        return replace(next_state, started_at_ms=captured_at_ms)

    if config.is_checkpoint(station_id):
        return _mark_checkpoint(next_state, station_id)

    if station_id == LAP_END:
        if not uses_lap_start and started_now:
            # First scan starts the run; no lap yet.
            return _reset_checkpoints(next_state, config)

        if _missing_checkpoints(next_state, config):
            if config.has_flag(Flag.STRICT_ENFORCEMENT):
                return _add_flag(next_state, Flag.MISSING_CHECKPOINT_STRICT)
            if config.has_flag(Flag.SOFT_ENFORCEMENT):
                next_state = _add_flag(next_state, Flag.MISSING_CHECKPOINT)

        next_state = replace(next_state, lap_count=next_state.lap_count + 1)

        if config.finish_rule == FinishRule.AT_LAPS and config.laps_required is not None:
            if next_state.lap_count >= config.laps_required:
                next_state = replace(next_state, finished_at_ms=captured_at_ms)

        return _reset_checkpoints(next_state, config)

    if station_id == FINISH:
        if config.finish_rule == FinishRule.FINISH_SCAN_WITH_MIN_LAPS:
            required = config.min_laps_required or 0
            if next_state.lap_count < required:
                return _add_flag(next_state, Flag.EARLY_FINISH)
        return replace(next_state, finished_at_ms=captured_at_ms)

    return next_state


def fold_events(
    events: Iterable[RunEvent],
    config: RunTemplateConfig,
    state: Optional[RunnerDerivedState] = None,
) -> RunnerDerivedState:
    """Apply events in the given order, starting from state (or the initial state)."""
    st = state if state is not None else RunnerDerivedState.initial()
    for ev in events:
        st = apply_event(st, ev, config)
    return st
