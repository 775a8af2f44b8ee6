"""
Event model for runner pass capture.

Events are immutable facts. A retraction is a new UNDO event that references
the retracted event by id; nothing is ever edited in place.
"""

from dataclasses import dataclass
from typing import Optional

# Event types
SCAN = "SCAN"
START_SET = "START_SET"
UNDO = "UNDO"
CLEAR = "CLEAR"
CLEAR_ALL = "CLEAR_ALL"

EVENT_TYPES = (SCAN, START_SET, UNDO, CLEAR, CLEAR_ALL)

# Older captures stored scans as PASS.
LEGACY_SCAN_TYPE = "PASS"

# Stations
START = "START"
CHECKPOINT_A = "A"
CHECKPOINT_B = "B"
LAP_START = "LAP_START"
LAP_END = "LAP_END"
FINISH = "FINISH"

STATIONS = (START, CHECKPOINT_A, CHECKPOINT_B, LAP_START, LAP_END, FINISH)


def normalize_event_type(value: Optional[str]) -> Optional[str]:
    if value == LEGACY_SCAN_TYPE:
        return SCAN
    return value


@dataclass(frozen=True)
class RunEvent:
    """
    Immutable pass event for a single runner.

    Fields:
        id: Unique event identifier
        captured_at_ms: Device-local capture time (epoch milliseconds)
        type: One of EVENT_TYPES
        station_id: Station the event was captured at (required except for UNDO)
        target_id: Id of the retracted event (UNDO only)
    """
    id: str
    captured_at_ms: int
    type: str
    station_id: Optional[str] = None
    target_id: Optional[str] = None

    @property
    def is_undo(self) -> bool:
        return self.type == UNDO

    @property
    def is_reset(self) -> bool:
        return self.type in (CLEAR, CLEAR_ALL)
