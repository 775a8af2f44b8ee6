"""
Canonical serialization for deterministic hashing.

Two replicas that folded the same effective events must produce the same
bytes here, so derived state is compared through these functions.
"""

import json
from enum import Enum
from typing import Any


def canonicalize(obj: Any) -> Any:
    """
    Convert nested dict/list/tuple/set/Enum values to canonical form.

    Rules:
    - dict keys sorted (and stringified)
    - tuples converted to lists
    - sets converted to sorted lists
    - Enum members replaced by their value
    """
    if isinstance(obj, Enum):
        return canonicalize(obj.value)
    if isinstance(obj, dict):
        items = {str(getattr(k, "value", k)): v for k, v in obj.items()}
        return {k: canonicalize(items[k]) for k in sorted(items)}
    if isinstance(obj, (set, frozenset)):
        return sorted(canonicalize(x) for x in obj)
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x) for x in obj]
    return obj


def canonical_json_bytes(obj: Any) -> bytes:
    """
    Deterministic UTF-8 JSON bytes (sorted keys, no whitespace).
    """
    canon = canonicalize(obj)
    s = json.dumps(canon, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return s.encode("utf-8")


def canonical_json_str(obj: Any) -> str:
    return canonical_json_bytes(obj).decode("utf-8")
