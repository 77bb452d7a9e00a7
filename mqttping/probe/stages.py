"""
Stage schema: the declared order of timestamp stages a probe passes through
and the names given to the hops between them.
"""

from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional

from ..core.config import DEFAULT_HOPS, DEFAULT_STAGE_ORDER, StagesConfig

RTT_TOTAL = 'RTT_Total'


class Hop(NamedTuple):
    name: str
    start: str
    end: str


class StageSchema:
    """Ordered stage labels plus named hops.

    Per-hop deltas are computed by walking the stages present in a probe's
    timestamps in declared order and differencing each consecutive pair, so a
    new intermediary is supported by adding its label (and optionally a hop
    name) rather than new code. A consecutive pair without a declared hop is
    named ``<start>_to_<end>``.
    """

    def __init__(self, order: Iterable[str], hops: Iterable[Hop] = ()):
        self.order: List[str] = list(order)
        if len(self.order) < 2:
            raise ValueError("Stage schema needs at least a first and a last stage")
        self.hops: List[Hop] = list(hops)
        self._by_pair = {(hop.start, hop.end): hop.name for hop in self.hops}

    @classmethod
    def default(cls) -> 'StageSchema':
        return cls.from_config(StagesConfig(order=list(DEFAULT_STAGE_ORDER), hops=dict(DEFAULT_HOPS)))

    @classmethod
    def from_config(cls, config: StagesConfig) -> 'StageSchema':
        hops = [Hop(name, start, end) for name, (start, end) in config.hops.items()]
        return cls(config.order, hops)

    @property
    def first(self) -> str:
        return self.order[0]

    @property
    def last(self) -> str:
        return self.order[-1]

    def hop_name(self, start: str, end: str) -> str:
        return self._by_pair.get((start, end), f"{start}_to_{end}")

    def metric_names(self) -> List[str]:
        """Metric names in report order: total RTT, then declared hops."""
        return [RTT_TOTAL] + [hop.name for hop in self.hops]

    def ordered(self, stage_timestamps: Mapping[str, int]) -> Dict[str, int]:
        """Return the stamps in schema order, unknown labels kept at the end."""
        result = {label: stage_timestamps[label] for label in self.order if label in stage_timestamps}
        for label, stamp in stage_timestamps.items():
            result.setdefault(label, stamp)
        return result

    def hop_deltas(self, stage_timestamps: Mapping[str, int]) -> Dict[str, int]:
        """Consecutive differences between the known stages that are present.

        Negative values (clock skew between hops) are returned unchanged.
        """
        present = [label for label in self.order if label in stage_timestamps]
        deltas = {}
        for start, end in zip(present, present[1:]):
            deltas[self.hop_name(start, end)] = stage_timestamps[end] - stage_timestamps[start]
        return deltas

    def total_rtt(self, stage_timestamps: Mapping[str, int]) -> Optional[int]:
        if self.first not in stage_timestamps or self.last not in stage_timestamps:
            return None
        return stage_timestamps[self.last] - stage_timestamps[self.first]
