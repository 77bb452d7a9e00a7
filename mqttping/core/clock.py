"""
Clock and identifier source for MQTTPing.
"""

import itertools
import secrets
import string
import time

_ID_ALPHABET = string.digits + string.ascii_lowercase


class Clock:
    """Supplies wall-clock timestamps in milliseconds and unique probe ids."""

    def now_ms(self) -> int:
        """Get current wall-clock time in whole milliseconds since epoch."""
        return time.time_ns() // 1_000_000

    def monotonic(self) -> float:
        """Get a monotonic reading in seconds, used only for scheduling."""
        return time.monotonic()

    def new_id(self) -> str:
        """Generate a probe id of the form msg_<ms>_<9 base36 chars>."""
        suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(9))
        return f"msg_{self.now_ms()}_{suffix}"


class ManualClock(Clock):
    """Clock whose time only moves when told to. Ids are sequential."""

    def __init__(self, start_ms: int = 0):
        self.current_ms = start_ms
        self._ids = itertools.count(1)

    def now_ms(self) -> int:
        return self.current_ms

    def monotonic(self) -> float:
        return self.current_ms / 1000.0

    def advance(self, ms: int) -> int:
        self.current_ms += ms
        return self.current_ms

    def new_id(self) -> str:
        return f"msg_{next(self._ids)}"
