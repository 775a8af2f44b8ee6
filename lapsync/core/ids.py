"""
Identifier generation.

Event ids must be unique across devices because the remote dedupes by id.
"""

import uuid


def new_id() -> str:
    """Random UUID4 string, used for events and locally created sessions."""
    return str(uuid.uuid4())
