"""
lapsync CLI - offline-first lap counting

Commands:
- lapsync session create/import-token/list/show - Local sessions and pairing
- lapsync capture scan/undo/clear/reset/start - Station capture
- lapsync replay - Rebuild runner state from the event log
- lapsync sync - Push/pull replication with the remote
- lapsync log tail - Recent events of a session
"""

from lapsync import __version__

__all__ = ["__version__"]
