"""
Test suite for lapsync.

Focus areas:
- Template resolution and reducer rules
- Effective-log filtering and replay determinism
- Local store contract (memory and JSONL journal)
- Capture boundary and push/pull sync
- CLI
"""
