"""
Latency samples and the append-only sample sequence of a run.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Mapping, Optional

from .stages import RTT_TOTAL, StageSchema


@dataclass(frozen=True)
class LatencySample:
    """Immutable record of one completed probe."""
    probe_id: str
    stage_timestamps: Dict[str, int]
    total_rtt: int
    hop_deltas: Dict[str, int] = field(default_factory=dict)
    source_tag: Optional[str] = None
    warmup: bool = False

    @classmethod
    def build(cls, probe_id: str, stage_timestamps: Mapping[str, int],
              schema: StageSchema, source_tag: Optional[str] = None) -> 'LatencySample':
        stamps = schema.ordered(stage_timestamps)
        total = schema.total_rtt(stamps)
        if total is None:
            raise ValueError(f"Probe {probe_id} lacks {schema.first} or {schema.last}")
        return cls(
            probe_id=probe_id,
            stage_timestamps=stamps,
            total_rtt=total,
            hop_deltas=schema.hop_deltas(stamps),
            source_tag=source_tag,
        )

    def metrics(self) -> Dict[str, int]:
        """All metric values this sample defines, keyed by metric name."""
        values = {RTT_TOTAL: self.total_rtt}
        values.update(self.hop_deltas)
        return values


class SampleSet:
    """Append-only sequence of samples; the first ``warmup_count`` are tagged warm-up."""

    def __init__(self, warmup_count: int = 0):
        self.warmup_count = warmup_count
        self._samples: List[LatencySample] = []

    def append(self, sample: LatencySample) -> LatencySample:
        sample = replace(sample, warmup=len(self._samples) < self.warmup_count)
        self._samples.append(sample)
        return sample

    def all(self) -> List[LatencySample]:
        return list(self._samples)

    def measured(self) -> List[LatencySample]:
        """Samples that count towards statistics and export."""
        return [s for s in self._samples if not s.warmup]

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[LatencySample]:
        return iter(self._samples)
