import json

import pytest

from mqttping.core.errors import MalformedMessage
from mqttping.probe.messages import (LatencyRequest, LatencyResponse,
                                     UnknownMessage, parse_message)


def test_request_wire_format():
    request = LatencyRequest("msg_1", 1000, {"T1": 1000}, {"1": 1, "2": 0})
    assert json.loads(request.encode()) == {
        "messageType": "latency_request",
        "messageId": "msg_1",
        "timestamp": 1000,
        "timestamps": {"T1": 1000},
        "data": {"1": 1, "2": 0},
    }


def test_parse_response():
    payload = json.dumps({
        "messageType": "latency_response",
        "originalMessageId": "p1",
        "timestamp": 1020,
        "timestamps": {"T1": 1000, "T2": 1010, "T3": 1020.7},
        "data": [1, 2],
        "sourceTag": "django",
    }).encode()

    message = parse_message(payload)
    assert isinstance(message, LatencyResponse)
    assert message.original_message_id == "p1"
    assert message.timestamps == {"T1": 1000, "T2": 1010, "T3": 1020}
    assert message.data == [1, 2]
    assert message.source_tag == "django"


def test_websocket_type_is_accepted_as_source_tag():
    message = parse_message(json.dumps({
        "messageType": "latency_response",
        "originalMessageId": "p1",
        "websocketType": "frontend",
    }))
    assert message.source_tag == "frontend"
    assert message.timestamps == {}


def test_request_without_stage_map_uses_timestamp_as_t1():
    message = parse_message(json.dumps({
        "messageType": "latency_request",
        "messageId": "peer_7",
        "timestamp": 5000,
        "data": None,
    }))
    assert isinstance(message, LatencyRequest)
    assert message.timestamps == {"T1": 5000}


def test_unknown_message_type():
    message = parse_message(b'{"messageType": "heartbeat", "seq": 3}')
    assert isinstance(message, UnknownMessage)
    assert message.message_type == "heartbeat"
    assert message.raw["seq"] == 3


def test_missing_message_type_is_unknown():
    message = parse_message(b'{"hello": "world"}')
    assert isinstance(message, UnknownMessage)
    assert message.message_type is None


@pytest.mark.parametrize("payload", [
    b"not json",
    b"\xff\xfe",
    b"[1, 2, 3]",
    b'{"messageType": 5}',
    b'{"messageType": "latency_response"}',
    b'{"messageType": "latency_response", "originalMessageId": ""}',
    b'{"messageType": "latency_response", "originalMessageId": "p1", "timestamps": [1000]}',
    b'{"messageType": "latency_response", "originalMessageId": "p1", "timestamps": {"T2": "late"}}',
    b'{"messageType": "latency_response", "originalMessageId": "p1", "timestamps": {"T2": true}}',
    b'{"messageType": "latency_response", "originalMessageId": "p1", "timestamps": {"T2": NaN}}',
    b'{"messageType": "latency_request", "messageId": "p1"}',
    b'{"messageType": "status", "data": ' + b"[" * 100000 + b"]" * 100000 + b"}",
])
def test_malformed_payloads(payload):
    with pytest.raises(MalformedMessage):
        parse_message(payload)
