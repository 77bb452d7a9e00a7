import signal

from click.testing import CliRunner

import mqttping.mqttping as cli

create_transport = cli.create_transport


def test_loopback_dry_run(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "setup_logging", lambda config, level: None)
    monkeypatch.setattr(signal, "signal", lambda signum, handler: None)

    result = CliRunner().invoke(cli.main, [
        "--config", str(tmp_path / "missing.toml"),
        "--transport", "loopback",
        "--count", "4",
        "--warmup", "1",
        "--interval", "0.01",
    ])

    assert result.exit_code == 0, result.output
    assert "Results written to" in result.output
    files = list((tmp_path / "results").glob("latency_results_client_*.csv"))
    assert len(files) == 1
    assert len(files[0].read_text().splitlines()) == 4


def test_environment_only_configuration(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "setup_logging", lambda config, level: None)
    monkeypatch.setattr(signal, "signal", lambda signum, handler: None)
    monkeypatch.setenv("MQTT_BROKER", "broker.example")
    monkeypatch.setenv("MQTT_PORT", "8883")
    monkeypatch.setenv("MQTT_TOPIC", "latency/env")
    seen = {}

    def loopback_in_place_of_broker(config, kind, clock):
        seen["kind"] = kind
        seen["mqtt"] = config.mqtt
        return create_transport(config, "loopback", clock)

    monkeypatch.setattr(cli, "create_transport", loopback_in_place_of_broker)

    result = CliRunner().invoke(cli.main, [
        "--config", str(tmp_path / "missing.toml"),
        "--count", "2",
        "--interval", "0.01",
    ])

    assert result.exit_code == 0, result.output
    assert seen["kind"] == "mqtt"
    assert seen["mqtt"].broker == "broker.example"
    assert seen["mqtt"].port == 8883
    assert seen["mqtt"].topic == "latency/env"
    assert "Results written to" in result.output


def test_invalid_config_value(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "config.toml"
    path.write_text("[mqtt]\nqos = 7\n")

    result = CliRunner().invoke(cli.main, ["--config", str(path)])

    assert result.exit_code == 1
    assert "QoS" in result.output
