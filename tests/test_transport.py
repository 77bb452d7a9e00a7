from types import SimpleNamespace
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt
import pytest

from mqttping.core.clock import ManualClock
from mqttping.core.config import MQTTConfig
from mqttping.core.errors import TransportError
from mqttping.probe.messages import LatencyRequest, parse_message
from mqttping.transport.loopback import HopSimulator, LoopbackTransport
from mqttping.transport.mqtt import PahoTransport


def paho_transport(**config):
    client = MagicMock()
    config.setdefault("tls", False)
    return PahoTransport(MQTTConfig(**config), client=client), client


def test_paho_connect_starts_network_loop():
    transport, client = paho_transport(broker="mq.local", port=1883, keepalive=30)
    transport.connect()
    client.connect_async.assert_called_once_with("mq.local", 1883, keepalive=30)
    client.loop_start.assert_called_once()


def test_paho_connect_failure_raises_transport_error():
    transport, client = paho_transport()
    client.connect_async.side_effect = OSError("unreachable")
    with pytest.raises(TransportError):
        transport.connect()


def test_paho_credentials_and_tls():
    transport, client = paho_transport(username="u", password="p", tls=True)
    client.username_pw_set.assert_called_once_with("u", "p")
    client.tls_set.assert_called_once()


def test_paho_publish_failure():
    transport, client = paho_transport()
    client.publish.return_value = SimpleNamespace(rc=mqtt.MQTT_ERR_NO_CONN)
    with pytest.raises(TransportError):
        transport.publish("t", b"{}", 1)


def test_paho_publish_success():
    transport, client = paho_transport()
    client.publish.return_value = SimpleNamespace(rc=mqtt.MQTT_ERR_SUCCESS)
    transport.publish("t", b"{}", 2)
    client.publish.assert_called_once_with("t", b"{}", qos=2)


def test_paho_subscribe_failure():
    transport, client = paho_transport()
    client.subscribe.return_value = (mqtt.MQTT_ERR_NO_CONN, None)
    with pytest.raises(TransportError):
        transport.subscribe("t", 0)


def test_paho_callbacks_are_forwarded():
    transport, _ = paho_transport()
    events = []
    transport.on_connect = lambda: events.append("connect")
    transport.on_subscribe = lambda: events.append("subscribe")
    transport.on_message = lambda topic, payload: events.append((topic, payload))
    transport.on_disconnect = lambda reason: events.append("disconnect")

    ok = SimpleNamespace(is_failure=False)
    refused = SimpleNamespace(is_failure=True)
    transport._on_connect(None, None, None, refused)
    transport._on_connect(None, None, None, ok)
    transport._on_subscribe(None, None, 1, [ok])
    transport._on_subscribe(None, None, 2, [refused])
    transport._on_message(None, None, SimpleNamespace(topic="t", payload=b"x"))
    transport._on_disconnect(None, None, None, ok)

    assert events == ["connect", "subscribe", ("t", b"x"), "disconnect"]


def test_loopback_echoes_to_publisher():
    transport = LoopbackTransport()
    received = []
    transport.on_message = lambda topic, payload: received.append((topic, payload))
    transport.connect()
    transport.subscribe("t")

    transport.publish("t", b"hello")
    transport.publish("other", b"ignored")

    assert received == [("t", b"hello")]


def test_loopback_requires_connection():
    transport = LoopbackTransport()
    with pytest.raises(TransportError):
        transport.publish("t", b"x")


def test_hop_simulator_stamps_offsets():
    clock = ManualClock(start_ms=1000)
    client = LoopbackTransport()
    replies = []
    client.on_message = lambda topic, payload: replies.append(parse_message(payload))
    client.connect()
    client.subscribe("t")
    HopSimulator(client.broker, "t", clock, stages=("T2", "T2_5", "T3"),
                 stage_offsets={"T2": 5, "T2_5": 8, "T3": 12})

    client.publish("t", LatencyRequest("p1", 1000, {"T1": 1000}).encode())

    response = replies[-1]
    assert response.original_message_id == "p1"
    assert response.timestamps == {"T1": 1000, "T2": 1005, "T2_5": 1008, "T3": 1012}
    assert response.source_tag == "simulator"
