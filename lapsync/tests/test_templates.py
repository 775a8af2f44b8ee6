"""
Tests for template resolution and session overrides.
"""

from lapsync.core.events import CHECKPOINT_A, CHECKPOINT_B, FINISH, LAP_END, START
from lapsync.core.templates import (
    DEFAULT_GAP_FINISH_MS,
    DEFAULT_GAP_NORMAL_MS,
    FinishRule,
    Flag,
    StartRule,
    TemplateKey,
    apply_enforcement,
    apply_scan_gap,
    get_template_config,
    resolve_config,
)


def test_template_topologies():
    """Each template key resolves to its fixed station order."""
    assert get_template_config("A", 3).station_order == (LAP_END,)
    assert get_template_config("B", 3).station_order == (CHECKPOINT_A, LAP_END)
    assert get_template_config("C", 3).station_order == (CHECKPOINT_A, CHECKPOINT_B, LAP_END)
    assert get_template_config("D", 3).station_order == (START, LAP_END)
    assert get_template_config("E", 3).station_order == (LAP_END, FINISH)


def test_template_flags():
    assert get_template_config("A", 3).flags == ()
    for key in ("B", "C", "D"):
        assert get_template_config(key, 3).flags == (Flag.SOFT_ENFORCEMENT,)
    assert get_template_config("E", 3).flags == (
        Flag.SOFT_ENFORCEMENT,
        Flag.FINISH_SCAN_WITH_MIN_LAPS,
    )


def test_template_e_min_laps():
    cfg = get_template_config(TemplateKey.E, 4)
    assert cfg.min_laps_required == 4
    assert cfg.finish_rule == FinishRule.FINISH_SCAN_WITH_MIN_LAPS
    assert cfg.laps_required is None


def test_no_template_finishes_at_laps():
    """No built-in template wires the AT_LAPS finish rule."""
    for key in TemplateKey:
        cfg = get_template_config(key.value, 3)
        assert cfg.finish_rule != FinishRule.AT_LAPS
        assert cfg.start_rule == StartRule.RUNNER_START


def test_unknown_key_falls_back_to_a():
    cfg = get_template_config("Z", 5)
    assert cfg.template_key == "A"
    assert cfg.station_order == (LAP_END,)


def test_default_gaps():
    cfg = get_template_config("C", 3)
    assert cfg.gap_ms(LAP_END) == DEFAULT_GAP_NORMAL_MS == 10000
    assert cfg.gap_ms(CHECKPOINT_A) == DEFAULT_GAP_NORMAL_MS
    assert cfg.gap_ms(FINISH) == DEFAULT_GAP_FINISH_MS == 5000


def test_checkpoints_exclude_start_and_lap_stations():
    assert get_template_config("C", 3).checkpoints == (CHECKPOINT_A, CHECKPOINT_B)
    assert get_template_config("D", 3).checkpoints == ()
    assert get_template_config("E", 3).checkpoints == ()
    assert not get_template_config("D", 3).is_checkpoint(START)


def test_enforcement_off_drops_both_flags():
    cfg = apply_enforcement(get_template_config("E", 3), "OFF")
    assert cfg.flags == (Flag.FINISH_SCAN_WITH_MIN_LAPS,)


def test_enforcement_strict_replaces_soft():
    cfg = apply_enforcement(get_template_config("C", 3), "STRICT")
    assert cfg.flags == (Flag.STRICT_ENFORCEMENT,)


def test_enforcement_keeps_existing_flag_positions():
    """SOFT on template E keeps the original flag order untouched."""
    base = get_template_config("E", 3)
    assert apply_enforcement(base, "SOFT").flags == base.flags


def test_enforcement_soft_on_template_a_adds_flag():
    cfg = apply_enforcement(get_template_config("A", 3), "SOFT")
    assert cfg.flags == (Flag.SOFT_ENFORCEMENT,)


def test_enforcement_none_or_unknown_is_noop():
    base = get_template_config("B", 3)
    assert apply_enforcement(base, None) == base
    assert apply_enforcement(base, "LOUD") == base


def test_scan_gap_override_spares_finish():
    cfg = apply_scan_gap(get_template_config("E", 3), 2000)
    assert cfg.gap_ms(LAP_END) == 2000
    assert cfg.gap_ms(START) == 2000
    assert cfg.gap_ms(FINISH) == DEFAULT_GAP_FINISH_MS


def test_scan_gap_falsy_is_noop():
    base = get_template_config("A", 3)
    assert apply_scan_gap(base, 0) == base
    assert apply_scan_gap(base, None) == base


def test_resolve_config_applies_both_overrides():
    cfg = resolve_config("B", 2, enforcement="STRICT", scan_gap_ms=3000)
    assert cfg.flags == (Flag.STRICT_ENFORCEMENT,)
    assert cfg.gap_ms(CHECKPOINT_A) == 3000


def test_resolved_config_is_not_shared():
    """Overrides never leak into later resolutions."""
    resolve_config("C", 3, scan_gap_ms=1)
    assert get_template_config("C", 3).gap_ms(LAP_END) == DEFAULT_GAP_NORMAL_MS
