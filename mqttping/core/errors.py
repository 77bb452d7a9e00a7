"""
Error types raised by the MQTTPing engine.
"""

from typing import Optional


class MQTTPingError(Exception):
    """Base class for MQTTPing errors."""


class TransportError(MQTTPingError):
    """Connect, subscribe or publish failed at the transport layer."""


class MalformedMessage(MQTTPingError):
    """An inbound payload is not a well-formed probe message."""


class UnknownMessageType(MQTTPingError):
    """An inbound message carries a messageType the engine does not handle."""

    def __init__(self, message_type: Optional[str]):
        super().__init__(f"Unknown message type: {message_type!r}")
        self.message_type = message_type


class DuplicateId(MQTTPingError):
    """A probe id was registered while already in flight."""

    def __init__(self, probe_id: str):
        super().__init__(f"Probe id already in flight: {probe_id}")
        self.probe_id = probe_id


class EmitError(MQTTPingError):
    """A probe could not be emitted."""


class BudgetExhausted(EmitError):
    """The total message budget has already been spent."""


class PublishFailed(EmitError):
    """The probe was registered but publishing it failed."""

    def __init__(self, probe_id: str, reason: str):
        super().__init__(f"Failed to publish probe {probe_id}: {reason}")
        self.probe_id = probe_id
