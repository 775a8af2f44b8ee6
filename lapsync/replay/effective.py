"""
Effective-log filter.

Drops the targets of UNDO events before the fold. The UNDO markers stay in the
collection and are folded as no-ops, so the reducer never needs to look ahead.
"""

from typing import Iterable, List, Optional, Sequence, TypeVar

from ..core.events import UNDO

E = TypeVar("E")


def _target_of(event) -> Optional[str]:
    # RunEvent carries target_id, EventRecord carries ref_event_id.
    target = getattr(event, "target_id", None)
    if target is None:
        target = getattr(event, "ref_event_id", None)
    return target


def retracted_ids(events: Iterable[E]) -> set:
    return {
        _target_of(ev)
        for ev in events
        if getattr(ev, "type", None) == UNDO and _target_of(ev)
    }


def effective_events(events: Sequence[E]) -> List[E]:
    """
    Remove every event whose id is targeted by an UNDO.

    Works on RunEvent and EventRecord alike. Input order is preserved.
    """
    undone = retracted_ids(events)
    return [ev for ev in events if ev.id not in undone]


def replay_order(events: Iterable[E]) -> List[E]:
    """
    Capture-time order, ties broken by id.

    The tie-break makes the order independent of how events were appended
    or received, so every replica folds the same sequence.
    """
    return sorted(events, key=lambda ev: (ev.captured_at_ms, ev.id))
