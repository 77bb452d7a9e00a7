"""
Response reconciler: classifies inbound messages and turns matched
responses into latency samples.
"""

import logging
from collections import Counter
from typing import Dict, Optional

from ..core.clock import Clock
from ..core.errors import MalformedMessage, TransportError, UnknownMessageType
from ..transport.base import Transport
from .correlation import CorrelationTable
from .messages import (LatencyRequest, LatencyResponse, UnknownMessage,
                       parse_message)
from .samples import LatencySample, SampleSet
from .stages import StageSchema


class ResponseReconciler:
    """Handles every inbound message on the probe topic.

    With ``respond`` enabled the reconciler also answers other participants'
    requests (peer-echo topology). Requests whose id this participant
    registered itself are never answered.
    """

    def __init__(self, table: CorrelationTable, samples: SampleSet,
                 schema: StageSchema, clock: Clock,
                 transport: Optional[Transport] = None, topic: str = '', qos: int = 0,
                 respond: bool = False, source_tag: str = '',
                 responder_stage: str = 'T2'):
        self.table = table
        self.samples = samples
        self.schema = schema
        self.clock = clock
        self.transport = transport
        self.topic = topic
        self.qos = qos
        self.respond = respond
        self.source_tag = source_tag
        self.responder_stage = responder_stage
        self.logger = logging.getLogger(__name__)

        self.counters: Counter = Counter()

    def on_message(self, topic: str, payload: bytes) -> Optional[LatencySample]:
        """Process one inbound message. Returns the sample it completed, if any."""
        self.counters['received'] += 1
        try:
            message = parse_message(payload)
        except MalformedMessage as e:
            self.counters['malformed'] += 1
            self.logger.warning(f"Dropping malformed message on {topic}: {e}")
            return None

        if isinstance(message, LatencyResponse):
            return self._reconcile(message)

        if isinstance(message, LatencyRequest):
            self._answer(message)
            return None

        if isinstance(message, UnknownMessage):
            self.counters['unknown'] += 1
            self.logger.info(f"{UnknownMessageType(message.message_type)} on {topic}")
        return None

    def _reconcile(self, response: LatencyResponse) -> Optional[LatencySample]:
        probe_id = response.original_message_id
        send_time = self.table.resolve(probe_id)
        if send_time is None:
            # Already answered, expired, or never ours
            self.counters['unmatched'] += 1
            self.logger.debug(f"Ignoring response for unknown probe {probe_id}")
            return None

        arrival = self.clock.now_ms()
        stamps = dict(response.timestamps)
        stamps[self.schema.first] = send_time
        stamps[self.schema.last] = arrival

        sample = self.samples.append(
            LatencySample.build(probe_id, stamps, self.schema, source_tag=response.source_tag)
        )
        self.counters['completed'] += 1

        hops = ', '.join(f"{name}={delta}ms" for name, delta in sample.hop_deltas.items())
        self.logger.info(
            f"RTT for probe {probe_id}: {sample.total_rtt}ms"
            f"{' (warm-up)' if sample.warmup else ''} [{hops}]"
        )
        if response.source_tag:
            self.logger.debug(f"Probe {probe_id} answered by {response.source_tag}")
        return sample

    def _answer(self, request: LatencyRequest) -> None:
        if self.table.was_registered(request.message_id):
            self.counters['own_requests'] += 1
            return
        if not self.respond or self.transport is None:
            self.counters['ignored_requests'] += 1
            return

        arrival = self.clock.now_ms()
        stamps = dict(request.timestamps)
        stamps[self.responder_stage] = arrival
        response = LatencyResponse(
            original_message_id=request.message_id,
            timestamp=arrival,
            timestamps=stamps,
            data=request.data,
            source_tag=self.source_tag,
        )

        try:
            self.transport.publish(self.topic, response.encode(), self.qos)
        except TransportError as e:
            self.logger.error(f"Failed to answer probe {request.message_id}: {e}")
            return

        self.counters['answered'] += 1
        self.logger.debug(f"Answered probe {request.message_id} as {self.source_tag or 'peer'}")

    def stats(self) -> Dict[str, int]:
        keys = ('received', 'completed', 'unmatched', 'malformed', 'unknown',
                'answered', 'own_requests', 'ignored_requests', 'errors')
        return {key: self.counters[key] for key in keys}
