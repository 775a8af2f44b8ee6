"""
Capture clocks.

Capture trusts the device-local wall clock; there is no cross-device
synchronisation. Tests use ManualClock to pin timestamps.
"""

import time
from dataclasses import dataclass


class SystemClock:
    """Wall-clock time in epoch milliseconds."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


@dataclass
class ManualClock:
    """
    Hand-driven clock.

    now_ms() returns current without advancing; advance() moves it forward.
    """
    current: int = 0

    def now_ms(self) -> int:
        return self.current

    def advance(self, step_ms: int) -> int:
        self.current += step_ms
        return self.current
