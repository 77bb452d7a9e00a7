"""
Run controller for MQTTPing.

Every mutation of the correlation table and the sample sequence happens on
the thread that calls ``RunController.run()``. Transport callbacks, which
paho invokes from its network thread, and ``stop()``, which may be called
from a signal handler, only put events on a single-consumer queue. Timers
are deadlines checked by the same loop, so emission, reconciliation and
reaping interleave but never overlap.
"""

import logging
import queue
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..analysis.statistics import (StatisticsRecord, compute_statistics,
                                   format_report)
from ..core.clock import Clock
from ..core.config import Config
from ..core.errors import EmitError, TransportError
from ..output.base import ResultSink
from ..output.webhook import WebhookNotifier
from ..probe.correlation import CorrelationTable
from ..probe.emitter import ProbeEmitter
from ..probe.reaper import Reaper
from ..probe.reconciler import ResponseReconciler
from ..probe.samples import LatencySample, SampleSet
from ..probe.stages import StageSchema
from ..transport.base import Transport


class RunState(Enum):
    IDLE = 'idle'
    CONNECTING = 'connecting'
    SUBSCRIBING = 'subscribing'
    RUNNING = 'running'
    FINALIZING = 'finalizing'
    TERMINATED = 'terminated'


# Loop events
_CONNECTED = 'connected'
_SUBSCRIBED = 'subscribed'
_DISCONNECTED = 'disconnected'
_MESSAGE = 'message'
_STOP = 'stop'


@dataclass
class RunResult:
    """Outcome of a finished run."""
    role: str
    samples: List[LatencySample]
    statistics: Dict[str, StatisticsRecord]
    lost: int = 0
    discarded: int = 0
    counters: Dict[str, int] = field(default_factory=dict)
    outputs: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def measured(self) -> List[LatencySample]:
        return [s for s in self.samples if not s.warmup]

    def summary(self) -> Dict[str, Any]:
        return {
            'role': self.role,
            'samples': len(self.samples),
            'measured': len(self.measured),
            'lost': self.lost,
            'discarded': self.discarded,
            'cancelled': self.cancelled,
            'counters': dict(self.counters),
            'statistics': {name: record.to_dict() for name, record in self.statistics.items()},
            'outputs': list(self.outputs),
        }


class RunController:
    """Drives one measurement run from connect to shutdown."""

    def __init__(self, config: Config, transport: Transport,
                 sinks: Sequence[ResultSink] = (),
                 notifier: Optional[WebhookNotifier] = None,
                 clock: Optional[Clock] = None):
        self.config = config
        self.transport = transport
        self.sinks = list(sinks)
        self.notifier = notifier
        self.clock = clock or Clock()
        self.logger = logging.getLogger(__name__)

        probe = config.probe
        self.role = probe.role
        self.schema = StageSchema.from_config(config.stages)
        self.table = CorrelationTable()
        self.samples = SampleSet(probe.warmup_count)

        self.emitter = ProbeEmitter(
            transport, self.table, self.clock,
            topic=config.mqtt.topic,
            qos=config.mqtt.qos,
            budget=0 if self.role == 'responder' else probe.total_messages,
            first_stage=self.schema.first,
            default_payload=probe.payload,
        )
        self.reconciler = ResponseReconciler(
            self.table, self.samples, self.schema, self.clock,
            transport=transport,
            topic=config.mqtt.topic,
            qos=config.mqtt.qos,
            respond=self.role in ('peer', 'responder'),
            source_tag=probe.source_tag or self.role,
            responder_stage=probe.responder_stage,
        )
        self.reaper = Reaper(self.table, self.clock, timeout_ms=int(probe.timeout * 1000))

        self.state = RunState.IDLE
        self._events: queue.SimpleQueue = queue.SimpleQueue()
        self._next_emit: Optional[float] = None
        self._next_reap: Optional[float] = None

    # -- thread-safe entry points ---
    def stop(self) -> None:
        """Request shutdown. Safe to call from any thread or a signal handler."""
        self._events.put((_STOP,))

    def _wire_transport(self) -> None:
        self.transport.on_connect = lambda: self._events.put((_CONNECTED,))
        self.transport.on_subscribe = lambda: self._events.put((_SUBSCRIBED,))
        self.transport.on_disconnect = lambda reason: self._events.put((_DISCONNECTED, reason))
        self.transport.on_message = lambda topic, payload: self._events.put((_MESSAGE, topic, payload))

    # -- lifecycle ---
    def run(self) -> RunResult:
        """Run until the budget is spent or stop() is called."""
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"Run already started (state: {self.state.value})")

        self._wire_transport()
        self._transition(RunState.CONNECTING)
        try:
            self.transport.connect()
        except TransportError as e:
            self.logger.error(f"Transport error while connecting: {e}")

        cancelled = self._loop()
        return self._finalize(cancelled)

    def _transition(self, new_state: RunState) -> None:
        self.logger.info(f"Run state: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _loop(self) -> bool:
        """Process events and timers. Returns True when stopped by request."""
        while not self._finished():
            try:
                event = self._events.get(timeout=self._wait_time())
            except queue.Empty:
                event = None

            if event is not None:
                if event[0] == _STOP:
                    self.logger.info("Shutdown requested")
                    return True
                self._handle(event)

            self._run_timers()
        return False

    def _finished(self) -> bool:
        if self.state is not RunState.RUNNING or self.role == 'responder':
            return False
        return self.emitter.exhausted and len(self.table) == 0

    def _wait_time(self) -> Optional[float]:
        if self.state is not RunState.RUNNING:
            return None
        deadlines = [self._next_reap]
        if not self.emitter.exhausted:
            deadlines.append(self._next_emit)
        return max(min(deadlines) - self.clock.monotonic(), 0.0)

    def _handle(self, event: tuple) -> None:
        kind = event[0]
        if kind == _MESSAGE:
            try:
                self.reconciler.on_message(event[1], event[2])
            except Exception:
                self.reconciler.counters['errors'] += 1
                self.logger.exception(f"Error handling message on {event[1]}")
        elif kind == _CONNECTED:
            if self.state is RunState.CONNECTING:
                self._transition(RunState.SUBSCRIBING)
            else:
                self.logger.info("Reconnected to broker, renewing subscription")
            self._subscribe()
        elif kind == _SUBSCRIBED:
            if self.state is RunState.SUBSCRIBING:
                self._transition(RunState.RUNNING)
                self._arm_timers()
        elif kind == _DISCONNECTED:
            self.logger.warning(f"Transport disconnected: {event[1]}")

    def _subscribe(self) -> None:
        try:
            self.transport.subscribe(self.config.mqtt.topic, self.config.mqtt.qos)
        except TransportError as e:
            self.logger.error(f"Transport error while subscribing: {e}")

    def _arm_timers(self) -> None:
        now = self.clock.monotonic()
        self._next_emit = now
        self._next_reap = now + self.config.probe.reaper_interval

    def _run_timers(self) -> None:
        if self.state is not RunState.RUNNING:
            return
        now = self.clock.monotonic()

        if not self.emitter.exhausted and now >= self._next_emit:
            self._emit_probe()
            self._next_emit += self.config.probe.interval

        if now >= self._next_reap:
            self.reaper.tick()
            self._next_reap += self.config.probe.reaper_interval

    def _emit_probe(self) -> None:
        try:
            self.emitter.emit()
        except EmitError as e:
            self.logger.error(str(e))

    def _finalize(self, cancelled: bool) -> RunResult:
        self._transition(RunState.FINALIZING)
        self._next_emit = self._next_reap = None

        discarded = self.table.clear()
        if discarded:
            self.logger.info(f"Discarded {discarded} probes still in flight")

        measured = self.samples.measured()
        statistics = compute_statistics(measured, self.schema.metric_names())
        result = RunResult(
            role=self.role,
            samples=self.samples.all(),
            statistics=statistics,
            lost=self.reaper.lost,
            discarded=discarded,
            counters=self.reconciler.stats(),
            cancelled=cancelled,
        )

        if self.role != 'responder':
            self.logger.info(
                f"Run finished: {len(measured)} measured samples "
                f"({len(self.samples) - len(measured)} warm-up, {result.lost} lost)\n"
                f"{format_report(statistics)}"
            )
            for sink in self.sinks:
                try:
                    location = sink.write(measured, self.role)
                except OSError as e:
                    self.logger.error(f"Failed to write results: {e}")
                    location = None
                finally:
                    sink.close()
                if location:
                    result.outputs.append(location)

        if self.notifier is not None:
            self.notifier.notify(result.summary())

        try:
            self.transport.disconnect()
        except TransportError as e:
            self.logger.error(f"Transport error while disconnecting: {e}")

        self._transition(RunState.TERMINATED)
        return result
