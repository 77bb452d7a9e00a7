"""
Probe emitter: builds latency requests, registers them and publishes them.
"""

import logging
from typing import Any, Optional

from ..core.clock import Clock
from ..core.errors import BudgetExhausted, PublishFailed, TransportError
from ..transport.base import Transport
from .correlation import CorrelationTable
from .messages import LatencyRequest


class ProbeEmitter:
    """Emits probes on a topic until the total message budget is spent."""

    def __init__(self, transport: Transport, table: CorrelationTable, clock: Clock,
                 topic: str, qos: int = 0, budget: int = 0,
                 first_stage: str = 'T1', default_payload: Any = None):
        self.transport = transport
        self.table = table
        self.clock = clock
        self.topic = topic
        self.qos = qos
        self.budget = budget
        self.first_stage = first_stage
        self.default_payload = default_payload
        self.logger = logging.getLogger(__name__)

        self.sent = 0
        self.publish_failures = 0

    @property
    def remaining(self) -> int:
        return max(self.budget - self.sent, 0)

    @property
    def exhausted(self) -> bool:
        return self.sent >= self.budget

    def emit(self, payload: Optional[Any] = None) -> str:
        """Emit one probe and return its id.

        Raises BudgetExhausted if the budget is already spent. A publish
        failure raises PublishFailed but leaves the probe registered; if the
        message never reached the broker the reaper will expire it.
        """
        if self.exhausted:
            raise BudgetExhausted(f"All {self.budget} probes already emitted")

        probe_id = self.clock.new_id()
        send_time = self.clock.now_ms()
        request = LatencyRequest(
            message_id=probe_id,
            timestamp=send_time,
            timestamps={self.first_stage: send_time},
            data=self.default_payload if payload is None else payload,
        )

        self.table.register(probe_id, send_time)
        self.sent += 1

        try:
            self.transport.publish(self.topic, request.encode(), self.qos)
        except TransportError as e:
            self.publish_failures += 1
            raise PublishFailed(probe_id, str(e))

        self.logger.debug(f"Probe sent - ID: {probe_id} ({self.sent}/{self.budget})")
        if self.exhausted:
            self.logger.info(f"Message budget reached after {self.sent} probes")
        return probe_id
