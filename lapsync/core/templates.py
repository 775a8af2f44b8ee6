"""
Template configuration resolver.

Maps a template key and a required lap count to the station topology and the
enforcement rules the reducer folds against. Pure: same input, same config.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from .events import CHECKPOINT_A, CHECKPOINT_B, FINISH, LAP_END, LAP_START, START

DEFAULT_GAP_NORMAL_MS = 10000
DEFAULT_GAP_FINISH_MS = 5000

NORMAL_STATIONS = (START, CHECKPOINT_A, CHECKPOINT_B, LAP_START, LAP_END)

# Stations that never count as a checkpoint, even when listed in station_order.
NON_CHECKPOINT_STATIONS = frozenset({START, LAP_START, LAP_END, FINISH})


class TemplateKey(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"


class StartRule(str, Enum):
    RUNNER_START = "RUNNER_START"
    GLOBAL_START = "GLOBAL_START"


class FinishRule(str, Enum):
    AT_LAPS = "AT_LAPS"
    FINISH_SCAN_WITH_MIN_LAPS = "FINISH_SCAN_WITH_MIN_LAPS"


class Enforcement(str, Enum):
    OFF = "OFF"
    SOFT = "SOFT"
    STRICT = "STRICT"


class Flag(str, Enum):
    FINISH_SCAN_WITH_MIN_LAPS = "FINISH_SCAN_WITH_MIN_LAPS"
    LAP_START_REQUIRED = "LAP_START_REQUIRED"
    LAP_END_REQUIRED = "LAP_END_REQUIRED"
    SOFT_ENFORCEMENT = "SOFT_ENFORCEMENT"
    STRICT_ENFORCEMENT = "STRICT_ENFORCEMENT"
    MISSING_CHECKPOINT = "MISSING_CHECKPOINT"
    MISSING_CHECKPOINT_STRICT = "MISSING_CHECKPOINT_STRICT"
    EARLY_FINISH = "EARLY_FINISH"


def _build_gap_map() -> Dict[str, int]:
    gaps = {station: DEFAULT_GAP_NORMAL_MS for station in NORMAL_STATIONS}
    gaps[FINISH] = DEFAULT_GAP_FINISH_MS
    return gaps


@dataclass(frozen=True)
class RunTemplateConfig:
    """
    Derived run configuration (never persisted).

    Fields:
        template_key: Template the config was resolved from
        station_order: Ordered stations of the topology
        min_scan_gap_ms_by_station: Debounce window per station
        flags: Enforcement and rule flags
        min_laps_required: Lap threshold for FINISH_SCAN_WITH_MIN_LAPS
        laps_required: Lap threshold for AT_LAPS
        start_rule: How a runner's start time is established
        finish_rule: How a runner's finish time is established
        global_start_ms: Start time used by the GLOBAL_START rule
    """
    template_key: str
    station_order: Tuple[str, ...]
    min_scan_gap_ms_by_station: Dict[str, int] = field(default_factory=_build_gap_map)
    flags: Tuple[Flag, ...] = ()
    min_laps_required: Optional[int] = None
    laps_required: Optional[int] = None
    start_rule: Optional[StartRule] = StartRule.RUNNER_START
    finish_rule: Optional[FinishRule] = None
    global_start_ms: Optional[int] = None

    def has_flag(self, flag: Flag) -> bool:
        return flag in self.flags

    @property
    def uses_lap_start(self) -> bool:
        return LAP_START in self.station_order

    @property
    def checkpoints(self) -> Tuple[str, ...]:
        return tuple(s for s in self.station_order if s not in NON_CHECKPOINT_STATIONS)

    def is_checkpoint(self, station_id: str) -> bool:
        if station_id in NON_CHECKPOINT_STATIONS:
            return False
        return station_id in self.station_order

    def gap_ms(self, station_id: str) -> int:
        return self.min_scan_gap_ms_by_station.get(station_id, 0)


def get_template_config(template_key: str, laps_required: int) -> RunTemplateConfig:
    """
    Resolve a template key to its run configuration.

    Unknown keys fall back to template A (single lap-counter).
    """
    key = getattr(template_key, "value", template_key)

    if key == TemplateKey.B.value:
        return RunTemplateConfig(
            template_key=TemplateKey.B.value,
            station_order=(CHECKPOINT_A, LAP_END),
            flags=(Flag.SOFT_ENFORCEMENT,),
        )
    if key == TemplateKey.C.value:
        return RunTemplateConfig(
            template_key=TemplateKey.C.value,
            station_order=(CHECKPOINT_A, CHECKPOINT_B, LAP_END),
            flags=(Flag.SOFT_ENFORCEMENT,),
        )
    if key == TemplateKey.D.value:
        return RunTemplateConfig(
            template_key=TemplateKey.D.value,
            station_order=(START, LAP_END),
            flags=(Flag.SOFT_ENFORCEMENT,),
        )
    if key == TemplateKey.E.value:
        return RunTemplateConfig(
            template_key=TemplateKey.E.value,
            station_order=(LAP_END, FINISH),
            flags=(Flag.SOFT_ENFORCEMENT, Flag.FINISH_SCAN_WITH_MIN_LAPS),
            min_laps_required=laps_required,
            finish_rule=FinishRule.FINISH_SCAN_WITH_MIN_LAPS,
        )
    return RunTemplateConfig(template_key=TemplateKey.A.value, station_order=(LAP_END,))


def apply_enforcement(config: RunTemplateConfig, enforcement: Optional[str]) -> RunTemplateConfig:
    """
    Override the template's enforcement flags with a session-level mode.

    OFF drops both enforcement flags, SOFT and STRICT keep exactly one.
    None (or an unknown mode) leaves the template's own flags in place.
    """
    if not enforcement:
        return config
    mode = getattr(enforcement, "value", enforcement)
    if mode == Enforcement.OFF.value:
        drop, keep = (Flag.SOFT_ENFORCEMENT, Flag.STRICT_ENFORCEMENT), None
    elif mode == Enforcement.SOFT.value:
        drop, keep = (Flag.STRICT_ENFORCEMENT,), Flag.SOFT_ENFORCEMENT
    elif mode == Enforcement.STRICT.value:
        drop, keep = (Flag.SOFT_ENFORCEMENT,), Flag.STRICT_ENFORCEMENT
    else:
        return config

    flags = [f for f in config.flags if f not in drop]
    if keep is not None and keep not in flags:
        flags.append(keep)
    return replace(config, flags=tuple(flags))


def apply_scan_gap(config: RunTemplateConfig, scan_gap_ms: Optional[int]) -> RunTemplateConfig:
    """Use one debounce gap for every station except FINISH."""
    if not scan_gap_ms:
        return config
    gaps = {
        station: (gap if station == FINISH else scan_gap_ms)
        for station, gap in config.min_scan_gap_ms_by_station.items()
    }
    return replace(config, min_scan_gap_ms_by_station=gaps)


def resolve_config(
    template_key: str,
    laps_required: int,
    enforcement: Optional[str] = None,
    scan_gap_ms: Optional[int] = None,
) -> RunTemplateConfig:
    config = get_template_config(template_key, laps_required)
    config = apply_enforcement(config, enforcement)
    return apply_scan_gap(config, scan_gap_ms)
