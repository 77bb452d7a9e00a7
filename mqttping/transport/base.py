"""
Transport capability consumed by the probe engine.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional


class Transport(ABC):
    """Publish/subscribe connection.

    Implementations report asynchronous events through the ``on_*`` handler
    attributes, which may be invoked from any thread. Operations that fail
    immediately raise TransportError.
    """

    def __init__(self):
        self.on_connect: Optional[Callable[[], None]] = None
        self.on_subscribe: Optional[Callable[[], None]] = None
        self.on_disconnect: Optional[Callable[[str], None]] = None
        self.on_message: Optional[Callable[[str, bytes], None]] = None

    @abstractmethod
    def connect(self) -> None:
        """Start connecting; on_connect fires once the broker acknowledges."""
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, topic: str, qos: int = 0) -> None:
        """Subscribe to ``topic``; on_subscribe fires on acknowledgment."""
        raise NotImplementedError

    @abstractmethod
    def publish(self, topic: str, payload: bytes, qos: int = 0) -> None:
        """Queue ``payload`` for delivery without waiting for the broker."""
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError

    def _emit(self, handler, *args) -> None:
        if handler is not None:
            handler(*args)
