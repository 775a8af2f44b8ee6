"""
Core lap-counting primitives.

This module provides:
- RunEvent: Immutable pass records
- RunTemplateConfig: Station topology and enforcement rules
- RunnerDerivedState: Per-runner derived state
- apply_event / fold_events: Pure reducer
- Canonical: Deterministic serialization
- Clocks and ids
"""

from .events import RunEvent
from .templates import (
    Enforcement,
    FinishRule,
    Flag,
    RunTemplateConfig,
    StartRule,
    TemplateKey,
    get_template_config,
    resolve_config,
)
from .state import RunnerDerivedState
from .reducer import apply_event, fold_events
from .canonical import canonicalize, canonical_json_bytes, canonical_json_str
from .clock import ManualClock, SystemClock
from .ids import new_id
from .errors import EventStoreError, InvalidRunnerIdError, SessionNotFoundError, SyncTransportError

__all__ = [
    "RunEvent",
    "Enforcement",
    "FinishRule",
    "Flag",
    "RunTemplateConfig",
    "StartRule",
    "TemplateKey",
    "get_template_config",
    "resolve_config",
    "RunnerDerivedState",
    "apply_event",
    "fold_events",
    "canonicalize",
    "canonical_json_bytes",
    "canonical_json_str",
    "ManualClock",
    "SystemClock",
    "new_id",
    "EventStoreError",
    "InvalidRunnerIdError",
    "SessionNotFoundError",
    "SyncTransportError",
]
