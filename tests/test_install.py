"""
Installation checks for MQTTPing: third-party modules and the example config.
"""

import importlib
from pathlib import Path

import pytest

from mqttping.core.config import Config

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "config.toml.example"


@pytest.mark.parametrize("module", [
    "paho.mqtt.client",
    "numpy",
    "influxdb_client",
    "requests",
    "toml",
    "click",
])
def test_imports(module):
    """All required modules can be imported."""
    importlib.import_module(module)


def test_config_file():
    """The example configuration loads and validates."""
    import toml

    config_data = toml.load(EXAMPLE_CONFIG)
    for section in ["mqtt", "probe", "stages", "output", "influxdb", "logging", "monitoring"]:
        assert section in config_data, f"Missing {section} section"

    cfg = Config.from_dict(config_data)
    assert cfg.validate()
    assert cfg.probe.payload == {"1": 1, "2": 0}
    assert cfg.stages.hops["Django_to_Frontend"] == ("T2", "T3")
