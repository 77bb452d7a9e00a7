"""
Configuration management for MQTTPing.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import toml


ROLES = ('client', 'peer', 'responder')

DEFAULT_STAGE_ORDER = ['T1', 'T2', 'T2_5', 'T3', 'T4']

DEFAULT_HOPS = {
    'MQTT_to_WebSocket': ('T1', 'T2'),
    'WebSocket_Processing': ('T2', 'T2_5'),
    'Django_Processing': ('T2_5', 'T3'),
    'Django_to_Frontend': ('T2', 'T3'),
    'Frontend_to_MQTT': ('T3', 'T4'),
}

# Environment variables understood by the original deployment scripts
ENV_OVERRIDES = {
    'MQTT_BROKER': ('broker', str),
    'MQTT_PORT': ('port', int),
    'MQTT_USERNAME': ('username', str),
    'MQTT_PASSWORD': ('password', str),
    'MQTT_TOPIC': ('topic', str),
}


@dataclass
class MQTTConfig:
    """MQTT broker configuration settings."""
    broker: str = 'localhost'
    port: int = 8883
    username: str = ''
    password: str = ''
    tls: bool = True
    client_id: str = ''
    topic: str = 'latency/test'
    qos: int = 0
    keepalive: int = 60


@dataclass
class ProbeConfig:
    """Probe emission and timeout settings."""
    role: str = 'client'
    total_messages: int = 100
    warmup_count: int = 5
    interval: float = 5.0
    reaper_interval: float = 5.0
    timeout: float = 30.0
    payload: Dict[str, Any] = field(default_factory=lambda: {'1': 1, '2': 0})
    source_tag: str = ''
    responder_stage: str = 'T2'


@dataclass
class StagesConfig:
    """Ordered stage labels and the hop names between them."""
    order: List[str] = field(default_factory=lambda: list(DEFAULT_STAGE_ORDER))
    hops: Dict[str, Tuple[str, str]] = field(default_factory=lambda: dict(DEFAULT_HOPS))


@dataclass
class OutputConfig:
    """Result output settings."""
    directory: str = 'results'
    csv: bool = True


@dataclass
class InfluxDBConfig:
    """InfluxDB configuration settings."""
    enabled: bool = False
    url: str = 'http://localhost:8086'
    bucket: str = 'mqttping'
    organization: str = ''
    token: str = ''


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: str = 'INFO'
    file: str = ''
    max_size: int = 10
    backup_count: int = 3


@dataclass
class MonitoringConfig:
    """Monitoring configuration settings."""
    webhook_enabled: bool = False
    webhook_url: str = ''


def _section(cls, data: Optional[Dict[str, Any]]):
    """Build a section dataclass, rejecting keys it does not know."""
    data = dict(data or {})
    known = cls.__dataclass_fields__.keys()
    unknown = set(data) - set(known)
    if unknown:
        raise KeyError(f"{cls.__name__}: {', '.join(sorted(unknown))}")
    return cls(**data)


@dataclass
class Config:
    """Main configuration class."""
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    stages: StagesConfig = field(default_factory=StagesConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    influxdb: InfluxDBConfig = field(default_factory=InfluxDBConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> 'Config':
        """Create configuration from a parsed TOML document."""
        try:
            stages_data = dict(config_data.get('stages') or {})
            if 'hops' in stages_data:
                stages_data['hops'] = {
                    name: tuple(pair) for name, pair in stages_data['hops'].items()
                }

            return cls(
                mqtt=_section(MQTTConfig, config_data.get('mqtt')),
                probe=_section(ProbeConfig, config_data.get('probe')),
                stages=_section(StagesConfig, stages_data),
                output=_section(OutputConfig, config_data.get('output')),
                influxdb=_section(InfluxDBConfig, config_data.get('influxdb')),
                logging=_section(LoggingConfig, config_data.get('logging')),
                monitoring=_section(MonitoringConfig, config_data.get('monitoring')),
            )

        except KeyError as e:
            raise ValueError(f"Unknown configuration key: {e}")
        except TypeError as e:
            raise ValueError(f"Invalid configuration value: {e}")

    @classmethod
    def from_file(cls, config_path: Path) -> 'Config':
        """Load configuration from TOML file."""
        try:
            config_data = toml.load(config_path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ValueError(f"Failed to load configuration: {e}")

        config = cls.from_dict(config_data)
        config.apply_env(os.environ)
        return config

    def apply_env(self, environ) -> None:
        """Override broker settings from environment variables."""
        for name, (attr, convert) in ENV_OVERRIDES.items():
            value = environ.get(name)
            if value:
                try:
                    setattr(self.mqtt, attr, convert(value))
                except ValueError:
                    raise ValueError(f"Invalid value for {name}: {value!r}")

    def validate(self) -> bool:
        """Validate configuration values."""
        # Validate MQTT settings
        if self.mqtt.qos not in (0, 1, 2):
            raise ValueError(f"QoS must be 0, 1 or 2, got {self.mqtt.qos}")

        if not self.mqtt.topic:
            raise ValueError("MQTT topic must not be empty")

        if self.mqtt.port <= 0 or self.mqtt.port > 65535:
            raise ValueError("MQTT port must be between 1 and 65535")

        # Validate probe settings
        if self.probe.role not in ROLES:
            raise ValueError(f"Role must be one of {', '.join(ROLES)}")

        if self.probe.total_messages < 0 or self.probe.warmup_count < 0:
            raise ValueError("Message budget and warm-up count must not be negative")

        if self.probe.interval <= 0 or self.probe.reaper_interval <= 0:
            raise ValueError("Emission and reaper intervals must be positive")

        if self.probe.timeout <= self.probe.interval:
            raise ValueError("Probe timeout must be greater than the emission interval")

        # Validate stage schema
        order = self.stages.order
        if len(order) < 2 or order[0] != 'T1' or order[-1] != 'T4':
            raise ValueError("Stage order must start with T1 and end with T4")

        if len(set(order)) != len(order):
            raise ValueError("Stage order must not repeat labels")

        if self.probe.responder_stage not in order:
            raise ValueError(f"Responder stage {self.probe.responder_stage} is not a known stage")

        for name, (start, end) in self.stages.hops.items():
            if start not in order or end not in order:
                raise ValueError(f"Hop {name} refers to an unknown stage")
            if order.index(start) >= order.index(end):
                raise ValueError(f"Hop {name} must run forward through the stage order")

        return True
