"""
Exception types for the capture engine.

The reducer never raises; these cover the store, the sync transport and the
capture boundary.
"""


class EventStoreError(Exception):
    """Raised when event store operations fail."""
    pass


class SessionNotFoundError(EventStoreError):
    """Raised when a session id is not present in the store."""
    pass


class SyncTransportError(Exception):
    """Raised when the remote endpoint cannot be reached or times out."""
    pass


class InvalidRunnerIdError(ValueError):
    """Raised when a runner id does not match the session's id format."""
    pass
