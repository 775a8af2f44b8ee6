"""Command groups of the lapsync CLI."""
