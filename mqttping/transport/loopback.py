"""
In-process transport for dry runs and tests.

LoopbackBroker delivers each publish synchronously to every transport
subscribed to the topic, the publisher included, the way an MQTT broker
echoes a client's own messages back to it. HopSimulator plays the external
responder of a client/server topology.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from ..core.clock import Clock
from ..core.errors import MalformedMessage, TransportError
from ..probe.messages import LatencyRequest, LatencyResponse, parse_message
from .base import Transport


class LoopbackBroker:
    """Topic fan-out shared by every LoopbackTransport attached to it."""

    def __init__(self):
        self._subscribers: Dict[str, List['LoopbackTransport']] = defaultdict(list)
        self.published: List[tuple] = []

    def subscribe(self, topic: str, transport: 'LoopbackTransport') -> None:
        if transport not in self._subscribers[topic]:
            self._subscribers[topic].append(transport)

    def unsubscribe_all(self, transport: 'LoopbackTransport') -> None:
        for subscribers in self._subscribers.values():
            if transport in subscribers:
                subscribers.remove(transport)

    def deliver(self, topic: str, payload: bytes) -> None:
        self.published.append((topic, payload))
        for transport in list(self._subscribers.get(topic, ())):
            transport.deliver(topic, payload)


class LoopbackTransport(Transport):
    """Transport whose broker lives in the same process."""

    def __init__(self, broker: Optional[LoopbackBroker] = None):
        super().__init__()
        self.broker = broker or LoopbackBroker()
        self.connected = False
        self.fail_publish = False

    def connect(self) -> None:
        self.connected = True
        self._emit(self.on_connect)

    def subscribe(self, topic: str, qos: int = 0) -> None:
        if not self.connected:
            raise TransportError(f"Cannot subscribe to {topic}: not connected")
        self.broker.subscribe(topic, self)
        self._emit(self.on_subscribe)

    def publish(self, topic: str, payload: bytes, qos: int = 0) -> None:
        if not self.connected or self.fail_publish:
            raise TransportError(f"Cannot publish to {topic}: not connected")
        self.broker.deliver(topic, payload)

    def disconnect(self) -> None:
        if self.connected:
            self.connected = False
            self.broker.unsubscribe_all(self)
            self._emit(self.on_disconnect, 'client disconnect')

    def deliver(self, topic: str, payload: bytes) -> None:
        self._emit(self.on_message, topic, payload)


class HopSimulator:
    """Answers latency requests as if they had crossed the intermediary hops.

    With ``stage_offsets`` each stage is stamped at T1 plus its offset;
    without, every stage is stamped with the clock's current time.
    ``should_answer`` lets a caller drop selected probes to simulate loss.
    """

    def __init__(self, broker: LoopbackBroker, topic: str, clock: Clock,
                 stages=('T2', 'T3'), stage_offsets: Optional[Dict[str, int]] = None,
                 source_tag: str = 'simulator',
                 should_answer: Callable[[str], bool] = lambda probe_id: True):
        self.topic = topic
        self.clock = clock
        self.stages = list(stages)
        self.stage_offsets = stage_offsets
        self.source_tag = source_tag
        self.should_answer = should_answer
        self.answered = 0
        self.logger = logging.getLogger(__name__)

        self.transport = LoopbackTransport(broker)
        self.transport.on_message = self._on_message
        self.transport.connect()
        self.transport.subscribe(topic)

    def _on_message(self, topic: str, payload: bytes) -> None:
        try:
            message = parse_message(payload)
        except MalformedMessage:
            return
        if not isinstance(message, LatencyRequest):
            return
        if not self.should_answer(message.message_id):
            self.logger.debug(f"Simulating loss of probe {message.message_id}")
            return

        stamps = dict(message.timestamps)
        for stage in self.stages:
            if self.stage_offsets is not None:
                stamps[stage] = message.timestamp + self.stage_offsets[stage]
            else:
                stamps[stage] = self.clock.now_ms()

        response = LatencyResponse(
            original_message_id=message.message_id,
            timestamp=self.clock.now_ms(),
            timestamps=stamps,
            data=message.data,
            source_tag=self.source_tag,
        )
        self.answered += 1
        self.transport.publish(self.topic, response.encode())
