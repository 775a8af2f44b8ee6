"""
Tests for session-level derivation: per-runner streams and summaries.
"""

from lapsync.core.events import CLEAR_ALL, LAP_END, SCAN, START, START_SET, UNDO
from lapsync.core.templates import Flag, get_template_config
from lapsync.log.records import GLOBAL_RUNNER_ID, EventRecord, SessionRecord
from lapsync.query import (
    build_runner_states,
    build_summaries,
    global_start_ms,
    latest_clear_all_ms,
    natural_key,
    runner_state,
    runner_streams,
    session_config,
)


def rec(event_id, t, runner="7", station=LAP_END, type=SCAN, ref=None):
    return EventRecord(
        id=event_id,
        session_id="s1",
        runner_id=runner,
        station_id=station,
        type=type,
        captured_at_ms=t,
        ref_event_id=ref,
    )


def test_session_config_applies_overrides():
    s = SessionRecord(
        id="s1", template_key="C", laps_required=3, created_at_ms=0, enforcement="STRICT", scan_gap_ms=2000
    )
    cfg = session_config(s)
    assert cfg.flags == (Flag.STRICT_ENFORCEMENT,)
    assert cfg.gap_ms(LAP_END) == 2000


def test_natural_key_orders_numbers():
    ids = ["10", "2", "A10", "A4", "1"]
    assert sorted(ids, key=natural_key) == ["1", "2", "10", "A4", "A10"]


def test_latest_clear_all_ms():
    records = [rec("x1", 5, runner=GLOBAL_RUNNER_ID, type=CLEAR_ALL), rec("x2", 9, runner=GLOBAL_RUNNER_ID, type=CLEAR_ALL)]
    assert latest_clear_all_ms(records) == 9
    assert latest_clear_all_ms([rec("e1", 1)]) == 0


def test_global_start_is_earliest_effective_start_set():
    records = [
        rec("g1", 100, runner=GLOBAL_RUNNER_ID, station=START, type=START_SET),
        rec("g2", 50, runner=GLOBAL_RUNNER_ID, station=START, type=START_SET),
        rec("u1", 200, runner=GLOBAL_RUNNER_ID, station=START, type=UNDO, ref="g2"),
    ]
    assert global_start_ms(records) == 100
    assert global_start_ms([rec("e1", 1)]) is None


def test_runner_streams_include_clear_all():
    records = [
        rec("e1", 1, runner="7"),
        rec("e2", 2, runner="8"),
        rec("x1", 3, runner=GLOBAL_RUNNER_ID, type=CLEAR_ALL),
        rec("blank", 4, runner=""),
    ]

    streams = runner_streams(records)

    assert set(streams) == {"7", "8"}
    assert {r.id for r in streams["7"]} == {"e1", "x1"}
    assert {r.id for r in streams["8"]} == {"e2", "x1"}


def test_clear_all_resets_every_runner():
    cfg = get_template_config("A", 5)
    records = [
        rec("s7", 0, runner="7", station=START, type=START_SET),
        rec("l7", 11000, runner="7"),
        rec("s8", 0, runner="8", station=START, type=START_SET),
        rec("l8", 11000, runner="8"),
        rec("x1", 12000, runner=GLOBAL_RUNNER_ID, type=CLEAR_ALL),
    ]

    states = build_runner_states(records, cfg)

    assert states["7"].lap_count == 0
    assert states["8"].lap_count == 0


def test_runner_state_for_single_runner():
    cfg = get_template_config("A", 5)
    records = [
        rec("s7", 0, station=START, type=START_SET),
        rec("l1", 11000),
        rec("l2", 22000),
        rec("u1", 23000, type=UNDO, ref="l2"),
        rec("other", 22000, runner="8"),
    ]
    assert runner_state(records, "7", cfg).lap_count == 1


def test_build_summaries():
    cfg = get_template_config("B", 3)
    records = [
        rec("s10", 0, runner="10", station=START, type=START_SET),
        rec("l10", 11000, runner="10"),
        rec("s2", 0, runner="2", station=START, type=START_SET),
        rec("l2", 11000, runner="2"),
        rec("u2", 15000, runner="2", type=UNDO, ref="l2"),
    ]

    summaries = build_summaries(records, cfg)

    assert [s.runner_id for s in summaries] == ["2", "10"]
    two, ten = summaries
    assert two.lap_count == 0
    assert two.last_seen_at_ms == 0
    assert ten.lap_count == 1
    assert ten.flags == (Flag.MISSING_CHECKPOINT,)
    assert ten.last_seen_at_ms == 11000
    assert ten.to_dict()["flags"] == ["MISSING_CHECKPOINT"]
