import pytest

from mqttping.core.config import DEFAULT_HOPS, DEFAULT_STAGE_ORDER, Config


def test_defaults_are_valid():
    cfg = Config()
    assert cfg.validate()
    assert cfg.mqtt.qos == 0
    assert cfg.probe.timeout == 30.0
    assert cfg.probe.reaper_interval == 5.0
    assert cfg.stages.order == DEFAULT_STAGE_ORDER
    assert cfg.stages.hops == DEFAULT_HOPS


def test_missing_sections_fall_back_to_defaults():
    cfg = Config.from_dict({"mqtt": {"topic": "lat/probe", "qos": 1}})
    assert cfg.mqtt.topic == "lat/probe"
    assert cfg.mqtt.qos == 1
    assert cfg.probe.role == "client"


def test_unknown_key_is_rejected():
    with pytest.raises(ValueError, match="Unknown configuration key"):
        Config.from_dict({"probe": {"budget": 10}})


def test_hops_are_read_as_pairs():
    cfg = Config.from_dict({"stages": {
        "order": ["T1", "T2", "T4"],
        "hops": {"up": ["T1", "T2"], "down": ["T2", "T4"]},
    }})
    assert cfg.stages.hops == {"up": ("T1", "T2"), "down": ("T2", "T4")}
    assert cfg.validate()


@pytest.mark.parametrize("section, values", [
    ("mqtt", {"qos": 3}),
    ("mqtt", {"topic": ""}),
    ("probe", {"role": "observer"}),
    ("probe", {"total_messages": -1}),
    ("probe", {"interval": 0}),
    ("probe", {"interval": 5.0, "timeout": 5.0}),
    ("probe", {"responder_stage": "T9"}),
    ("stages", {"order": ["T2", "T3", "T4"]}),
])
def test_validate_rejects(section, values):
    cfg = Config.from_dict({section: values})
    with pytest.raises(ValueError):
        cfg.validate()


def test_backwards_hop_is_rejected():
    cfg = Config.from_dict({"stages": {"hops": {"back": ["T3", "T2"]}}})
    with pytest.raises(ValueError, match="forward"):
        cfg.validate()


def test_environment_overrides_broker_settings():
    cfg = Config()
    cfg.apply_env({"MQTT_BROKER": "mq.internal", "MQTT_PORT": "1883", "MQTT_TOPIC": "lat"})
    assert cfg.mqtt.broker == "mq.internal"
    assert cfg.mqtt.port == 1883
    assert cfg.mqtt.topic == "lat"


def test_environment_bad_port():
    with pytest.raises(ValueError, match="MQTT_PORT"):
        Config().apply_env({"MQTT_PORT": "eighty"})


def test_from_file(tmp_path, monkeypatch):
    monkeypatch.delenv("MQTT_BROKER", raising=False)
    monkeypatch.setenv("MQTT_USERNAME", "probe-user")
    path = tmp_path / "config.toml"
    path.write_text('[mqtt]\nbroker = "broker.local"\n\n[probe]\ntotal_messages = 20\nwarmup_count = 2\n')

    cfg = Config.from_file(path)
    assert cfg.mqtt.broker == "broker.local"
    assert cfg.mqtt.username == "probe-user"
    assert cfg.probe.total_messages == 20


def test_from_file_invalid_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[mqtt\nbroker = ")
    with pytest.raises(ValueError, match="Failed to load configuration"):
        Config.from_file(path)


def test_log_level_resolution():
    import logging

    from mqttping.core.config import LoggingConfig
    from mqttping.core.logger import log_level

    assert log_level(LoggingConfig(level="warning")) == logging.WARNING
    assert log_level(LoggingConfig(level="warning"), verbose=True) == logging.DEBUG
    with pytest.raises(ValueError):
        log_level(LoggingConfig(level="loud"))
