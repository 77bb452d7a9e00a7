"""
Summary statistics over latency samples.
"""

import math
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Sequence

import numpy as np

from ..probe.samples import LatencySample

PERCENTILES = (0.95, 0.99)


@dataclass(frozen=True)
class StatisticsRecord:
    """Summary of one metric across the measured samples."""
    count: int
    min: float
    max: float
    mean: float
    median: float
    std_dev: float
    p95: float
    p99: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def nearest_rank(sorted_values: Sequence[float], p: float) -> float:
    """Value at index floor(n * p) of an ascending sequence, no interpolation."""
    index = min(math.floor(len(sorted_values) * p), len(sorted_values) - 1)
    return sorted_values[index]


def summarize(values: Iterable[float]) -> StatisticsRecord:
    """Summarize a non-empty collection of values.

    The median is the upper middle element (index floor(n/2)), not the
    average of the two middles, so results match the recorded history.
    """
    ordered = sorted(values)
    if not ordered:
        raise ValueError("Cannot summarize an empty metric")
    data = np.asarray(ordered, dtype=float)
    p95, p99 = (nearest_rank(ordered, p) for p in PERCENTILES)
    return StatisticsRecord(
        count=len(ordered),
        min=ordered[0],
        max=ordered[-1],
        mean=float(np.mean(data)),
        median=nearest_rank(ordered, 0.5),
        std_dev=float(np.std(data)),
        p95=p95,
        p99=p99,
    )


def compute_statistics(samples: Iterable[LatencySample],
                       metric_names: Sequence[str]) -> Dict[str, StatisticsRecord]:
    """Compute a StatisticsRecord per metric.

    Samples that do not define a metric are skipped for that metric only;
    metrics with no values at all are left out of the result.
    """
    gathered: Dict[str, List[int]] = {name: [] for name in metric_names}
    for sample in samples:
        metrics = sample.metrics()
        for name in metric_names:
            if name in metrics:
                gathered[name].append(metrics[name])

    return {name: summarize(values) for name, values in gathered.items() if values}


def format_report(statistics: Dict[str, StatisticsRecord]) -> str:
    """Render statistics as a fixed-width text table."""
    if not statistics:
        return "No measured samples"

    width = max(len(name) for name in statistics)
    columns = ('count', 'min', 'max', 'mean', 'median', 'std_dev', 'p95', 'p99')
    lines = [f"{'metric':<{width}} " + ' '.join(f"{c:>9}" for c in columns)]
    for name, record in statistics.items():
        row = record.to_dict()
        cells = [f"{row['count']:>9d}"] + [f"{row[c]:>9.2f}" for c in columns[1:]]
        lines.append(f"{name:<{width}} " + ' '.join(cells))
    return '\n'.join(lines)
