"""
Correlation table: the authoritative record of probes still in flight.

Only the run loop thread touches the table (see runner.controller), so
resolve-then-delete needs no locking.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from ..core.errors import DuplicateId


@dataclass(frozen=True)
class InFlightProbe:
    probe_id: str
    send_time: int

    def age(self, now: int) -> int:
        return now - self.send_time


class CorrelationTable:
    """Maps probe id to send time. Entries are inserted and deleted, never updated."""

    def __init__(self):
        self._entries: Dict[str, InFlightProbe] = {}
        self._history: Set[str] = set()

    def register(self, probe_id: str, send_time: int) -> None:
        """Record a new in-flight probe. Raises DuplicateId if already present."""
        if probe_id in self._entries:
            raise DuplicateId(probe_id)
        self._entries[probe_id] = InFlightProbe(probe_id, send_time)
        self._history.add(probe_id)

    def resolve(self, probe_id: str) -> Optional[int]:
        """Remove the entry and return its send time, or None if not in flight."""
        entry = self._entries.pop(probe_id, None)
        return entry.send_time if entry else None

    def sweep_expired(self, now: int, timeout: int) -> List[InFlightProbe]:
        """Remove and return every entry older than ``timeout``."""
        expired = [entry for entry in self._entries.values() if entry.age(now) > timeout]
        for entry in expired:
            del self._entries[entry.probe_id]
        return expired

    def contains(self, probe_id: str) -> bool:
        return probe_id in self._entries

    def was_registered(self, probe_id: str) -> bool:
        """True for any id this table has ever held, in flight or not."""
        return probe_id in self._history

    def clear(self) -> int:
        """Drop every in-flight entry, returning how many were dropped."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, probe_id: str) -> bool:
        return self.contains(probe_id)
