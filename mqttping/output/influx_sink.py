"""
InfluxDB export of latency samples.
"""

import logging
from typing import List, Optional, Sequence

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from ..core.config import InfluxDBConfig
from ..probe.samples import LatencySample
from .base import ResultSink


class InfluxDBResultSink(ResultSink):
    """Writes one ``mqtt_latency`` point per sample."""

    measurement = 'mqtt_latency'

    def __init__(self, config: InfluxDBConfig, client: Optional[InfluxDBClient] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self._influx_client = client
        self._write_api = None

        self._init_influxdb()

    def _init_influxdb(self) -> None:
        """Initialize InfluxDB connection."""
        try:
            if self._influx_client is None:
                self._influx_client = InfluxDBClient(
                    url=self.config.url,
                    token=self.config.token,
                    org=self.config.organization
                )

            # Test connection
            self._influx_client.ping()

            self._write_api = self._influx_client.write_api(write_options=SYNCHRONOUS)

            self.logger.info("InfluxDB connection established")

        except Exception as e:
            self.logger.error(f"Failed to connect to InfluxDB: {e}")
            self._write_api = None

    def point(self, sample: LatencySample, name: str) -> Point:
        """Build the InfluxDB point for one sample."""
        point = Point(self.measurement).tag("role", name)
        if sample.source_tag:
            point = point.tag("source", sample.source_tag)
        point = point.field("probe_id", sample.probe_id)
        for metric, value in sample.metrics().items():
            point = point.field(metric, value)
        first_stamp = next(iter(sample.stage_timestamps.values()))
        return point.time(first_stamp, WritePrecision.MS)

    def write(self, samples: Sequence[LatencySample], name: str) -> Optional[str]:
        if not self._write_api:
            self.logger.warning("InfluxDB not connected, skipping export")
            return None

        points: List[Point] = [self.point(sample, name) for sample in samples]
        try:
            self._write_api.write(
                bucket=self.config.bucket,
                record=points
            )
        except Exception as e:
            self.logger.error(f"Failed to send data to InfluxDB: {e}")
            return None

        self.logger.info(f"Sent {len(points)} latency points to InfluxDB bucket {self.config.bucket}")
        return f"{self.config.url}/{self.config.bucket}"

    def close(self) -> None:
        if self._influx_client:
            self._influx_client.close()
            self._influx_client = None
