"""
Replay system for deterministic runner state reconstruction.

Replay filters retracted events, orders the rest by capture time and folds
them through the reducer. Must be 100% deterministic: same effective events ->
same state.
"""

from .effective import effective_events, replay_order, retracted_ids
from .runner import ReplayResult, compute_state_hash, replay

__all__ = [
    "effective_events",
    "replay_order",
    "retracted_ids",
    "ReplayResult",
    "compute_state_hash",
    "replay",
]
