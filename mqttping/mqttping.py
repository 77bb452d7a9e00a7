#!/usr/bin/env python3
"""
MQTTPing - MQTT round-trip latency probe
Command-line entry point: loads configuration, builds the transport and
result sinks, and runs the measurement.
"""

import logging
import os
import signal
import sys
from pathlib import Path
from typing import List

import click

from mqttping.core.clock import Clock
from mqttping.core.config import ROLES, Config
from mqttping.core.logger import log_level, setup_logging
from mqttping.output.base import ResultSink
from mqttping.output.csv_sink import CSVResultSink
from mqttping.output.webhook import WebhookNotifier
from mqttping.probe.stages import StageSchema
from mqttping.runner.controller import RunController
from mqttping.transport.base import Transport


def create_transport(config: Config, kind: str, clock: Clock) -> Transport:
    """Build the transport for ``kind`` ('mqtt' or 'loopback')."""
    if kind == 'loopback':
        from mqttping.transport.loopback import HopSimulator, LoopbackTransport

        transport = LoopbackTransport()
        if config.probe.role == 'client':
            # Stand-in for the external responder of a client/server deployment
            HopSimulator(transport.broker, config.mqtt.topic, clock)
        return transport

    from mqttping.transport.mqtt import PahoTransport
    return PahoTransport(config.mqtt)


def create_sinks(config: Config) -> List[ResultSink]:
    """Build the configured result sinks."""
    sinks: List[ResultSink] = []
    if config.output.csv:
        sinks.append(CSVResultSink(Path(config.output.directory), StageSchema.from_config(config.stages)))
    if config.influxdb.enabled:
        from mqttping.output.influx_sink import InfluxDBResultSink
        sinks.append(InfluxDBResultSink(config.influxdb))
    return sinks


@click.command()
@click.option('--config', '-c', default='config.toml',
              help='Configuration file path')
@click.option('--role', type=click.Choice(ROLES), default=None,
              help='Role to run (overrides configuration)')
@click.option('--transport', 'transport_kind', type=click.Choice(['mqtt', 'loopback']),
              default='mqtt', help='Transport to use; loopback runs in-process')
@click.option('--count', '-n', type=int, default=None, help='Total message budget')
@click.option('--warmup', '-w', type=int, default=None, help='Warm-up samples to exclude')
@click.option('--interval', '-i', type=float, default=None, help='Seconds between probes')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def main(config: str, role: str, transport_kind: str, count: int, warmup: int,
         interval: float, verbose: bool):
    """MQTTPing - MQTT round-trip latency probe"""

    try:
        # Load configuration
        config_path = Path(config)
        if config_path.exists():
            cfg = Config.from_file(config_path)
        else:
            # Defaults plus MQTT_* environment overrides
            cfg = Config()
            cfg.apply_env(os.environ)

        if role is not None:
            cfg.probe.role = role
        if count is not None:
            cfg.probe.total_messages = count
        if warmup is not None:
            cfg.probe.warmup_count = warmup
        if interval is not None:
            cfg.probe.interval = interval
        cfg.validate()

        # Setup logging
        setup_logging(cfg.logging, log_level(cfg.logging, verbose))

        logging.info(f"Starting MQTTPing in {cfg.probe.role} mode")
        logging.info(f"Configuration loaded from {config_path if config_path.exists() else 'defaults and environment'}")

        clock = Clock()
        controller = RunController(
            cfg,
            create_transport(cfg, transport_kind, clock),
            sinks=create_sinks(cfg),
            notifier=WebhookNotifier(cfg.monitoring),
            clock=clock,
        )

        def signal_handler(signum, frame):
            """Handle shutdown signals gracefully."""
            controller.stop()

        # Setup signal handlers
        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        result = controller.run()

        for location in result.outputs:
            click.echo(f"Results written to {location}")

    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        if verbose:
            logging.exception("Full traceback:")
        sys.exit(1)


if __name__ == '__main__':
    main()
