"""
Race-timing capture engine

Event-sourced lap counting for station-based fitness runs, with offline capture
and eventually-consistent push/pull synchronisation.
"""

__version__ = "0.1.0"
