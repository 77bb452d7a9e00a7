"""
Wire messages exchanged on the probe topic.

Two message types share the ``messageType`` discriminator::

    latency_request:  {messageType, messageId, timestamp, timestamps: {T1}, data}
    latency_response: {messageType, originalMessageId, timestamp,
                       timestamps: {T1, T2, [T2_5], T3}, data, sourceTag}

Inbound payloads are validated here, before anything else sees them, and
come out as one of LatencyRequest, LatencyResponse or UnknownMessage.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ..core.errors import MalformedMessage

LATENCY_REQUEST = 'latency_request'
LATENCY_RESPONSE = 'latency_response'


@dataclass(frozen=True)
class LatencyRequest:
    """Outbound probe, or a peer's probe that we may answer."""
    message_id: str
    timestamp: int
    timestamps: Dict[str, int]
    data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'messageType': LATENCY_REQUEST,
            'messageId': self.message_id,
            'timestamp': self.timestamp,
            'timestamps': dict(self.timestamps),
            'data': self.data,
        }

    def encode(self) -> bytes:
        return json.dumps(self.to_dict()).encode('utf-8')


@dataclass(frozen=True)
class LatencyResponse:
    """Answer to a probe, carrying every stage stamped along the way."""
    original_message_id: str
    timestamp: Optional[int]
    timestamps: Dict[str, int]
    data: Any = None
    source_tag: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'messageType': LATENCY_RESPONSE,
            'originalMessageId': self.original_message_id,
            'timestamp': self.timestamp,
            'timestamps': dict(self.timestamps),
            'data': self.data,
            'sourceTag': self.source_tag,
        }

    def encode(self) -> bytes:
        return json.dumps(self.to_dict()).encode('utf-8')


@dataclass(frozen=True)
class UnknownMessage:
    """Well-formed message with a messageType we do not handle."""
    message_type: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)


Message = Union[LatencyRequest, LatencyResponse, UnknownMessage]


def _to_ms(value: Any, name: str) -> int:
    # bool is an int subclass; a true/false stamp is never a timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedMessage(f"{name} is not a number: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise MalformedMessage(f"{name} is not finite: {value!r}")
    return int(value)


def _stage_map(value: Any) -> Dict[str, int]:
    if not isinstance(value, dict):
        raise MalformedMessage(f"timestamps is not an object: {value!r}")
    return {str(label): _to_ms(stamp, f"timestamps.{label}") for label, stamp in value.items()}


def _required_id(body: Dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedMessage(f"{key} missing or not a string")
    return value


def parse_message(payload: Union[bytes, str]) -> Message:
    """Parse and validate a raw payload.

    Raises MalformedMessage when the payload is not a JSON object or a known
    message type is missing a required field.
    """
    try:
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8')
        body = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedMessage(f"Payload is not valid JSON: {e}")
    except RecursionError:
        raise MalformedMessage("Payload is nested too deeply")

    if not isinstance(body, dict):
        raise MalformedMessage("Payload is not a JSON object")

    message_type = body.get('messageType')
    if message_type is not None and not isinstance(message_type, str):
        raise MalformedMessage(f"messageType is not a string: {message_type!r}")

    if message_type == LATENCY_REQUEST:
        message_id = _required_id(body, 'messageId')
        timestamp = body.get('timestamp')
        timestamps = _stage_map(body['timestamps']) if 'timestamps' in body else {}
        if timestamp is not None:
            timestamp = _to_ms(timestamp, 'timestamp')
            # Older senders only carry the top-level send time
            timestamps.setdefault('T1', timestamp)
        elif 'T1' in timestamps:
            timestamp = timestamps['T1']
        else:
            raise MalformedMessage("latency_request carries no send time")
        return LatencyRequest(
            message_id=message_id,
            timestamp=timestamp,
            timestamps=timestamps,
            data=body.get('data'),
        )

    if message_type == LATENCY_RESPONSE:
        original_id = _required_id(body, 'originalMessageId')
        timestamp = body.get('timestamp')
        timestamp = _to_ms(timestamp, 'timestamp') if timestamp is not None else None
        timestamps = _stage_map(body['timestamps']) if 'timestamps' in body else {}
        source_tag = body.get('sourceTag', body.get('websocketType'))
        return LatencyResponse(
            original_message_id=original_id,
            timestamp=timestamp,
            timestamps=timestamps,
            data=body.get('data'),
            source_tag=None if source_tag is None else str(source_tag),
        )

    return UnknownMessage(message_type=message_type, raw=body)
