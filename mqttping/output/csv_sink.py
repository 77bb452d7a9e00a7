"""
CSV export of latency samples.
"""

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..probe.samples import LatencySample
from ..probe.stages import RTT_TOTAL, StageSchema
from .base import ResultSink


def file_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp safe for file names (':' and '.' become '-')."""
    iso = moment.astimezone(timezone.utc).isoformat(timespec='milliseconds')
    iso = iso.replace('+00:00', 'Z')
    return iso.replace(':', '-').replace('.', '-')


class CSVResultSink(ResultSink):
    """Writes one row per sample under a fixed header derived from the stage schema."""

    def __init__(self, directory: Path, schema: StageSchema,
                 now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.directory = Path(directory)
        self.schema = schema
        self.now = now
        self.logger = logging.getLogger(__name__)

    @property
    def header(self) -> List[str]:
        return ['messageId'] + self.schema.order + [RTT_TOTAL] + [hop.name for hop in self.schema.hops]

    def filename(self, name: str) -> str:
        return f"latency_results_{name}_{file_timestamp(self.now())}.csv"

    def row(self, sample: LatencySample) -> List[object]:
        stamps = sample.stage_timestamps
        metrics = sample.metrics()
        return ([sample.probe_id]
                + [stamps.get(label, '') for label in self.schema.order]
                + [metrics[RTT_TOTAL]]
                + [metrics.get(hop.name, '') for hop in self.schema.hops])

    def write(self, samples: Sequence[LatencySample], name: str) -> Optional[str]:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / self.filename(name)

        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(self.header)
            for sample in samples:
                writer.writerow(self.row(sample))

        self.logger.info(f"Wrote {len(samples)} samples to {path}")
        return str(path)
