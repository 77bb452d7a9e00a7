"""
Reaper: expires probes that were never answered.
"""

import logging
from typing import List, Optional

from ..core.clock import Clock
from .correlation import CorrelationTable, InFlightProbe


class Reaper:
    """Evicts in-flight probes older than ``timeout_ms``.

    Lost probes are only logged and counted; they never become samples.
    """

    def __init__(self, table: CorrelationTable, clock: Clock, timeout_ms: int):
        self.table = table
        self.clock = clock
        self.timeout_ms = timeout_ms
        self.logger = logging.getLogger(__name__)
        self.lost = 0

    def tick(self, now: Optional[int] = None) -> List[InFlightProbe]:
        if now is None:
            now = self.clock.now_ms()
        expired = self.table.sweep_expired(now, self.timeout_ms)
        for entry in expired:
            self.logger.warning(f"Probe {entry.probe_id} expired without response after {entry.age(now)}ms")
        self.lost += len(expired)
        return expired
