"""
Result sink interface.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..probe.samples import LatencySample


class ResultSink(ABC):
    """Persists the measured samples of a finished run."""

    @abstractmethod
    def write(self, samples: Sequence[LatencySample], name: str) -> Optional[str]:
        """Persist ``samples`` under the logical ``name``; return where they went."""
        raise NotImplementedError

    def close(self) -> None:
        pass
