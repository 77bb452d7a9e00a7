"""
MQTT transport backed by paho-mqtt.
"""

import logging
import uuid

import paho.mqtt.client as mqtt
from paho.mqtt.client import CallbackAPIVersion

from ..core.config import MQTTConfig
from ..core.errors import TransportError
from .base import Transport


class PahoTransport(Transport):
    """Wraps a paho MQTT client.

    paho's network loop runs on its own thread and owns reconnection and
    backoff; its callbacks are forwarded to the ``on_*`` handlers unchanged.
    """

    def __init__(self, config: MQTTConfig, client: mqtt.Client = None):
        super().__init__()
        self.config = config
        self.logger = logging.getLogger(__name__)

        cid = config.client_id or f"mqttping-{uuid.uuid4().hex[:8]}"
        self.client = client or mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=cid,
        )

        if config.username:
            self.client.username_pw_set(config.username, config.password)

        if config.tls:
            self.client.tls_set()

        self.client.on_connect = self._on_connect
        self.client.on_subscribe = self._on_subscribe
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    # -- callbacks ---
    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            self.logger.error(f"Connection to MQTT broker refused: {reason_code}")
            return
        self.logger.info(f"Connected to MQTT broker {self.config.broker}:{self.config.port}")
        self._emit(self.on_connect)

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        failures = [rc for rc in reason_code_list if rc.is_failure]
        if failures:
            self.logger.error(f"Subscription refused: {failures[0]}")
            return
        self._emit(self.on_subscribe)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self.logger.warning(f"Disconnected from MQTT broker: {reason_code}")
        self._emit(self.on_disconnect, str(reason_code))

    def _on_message(self, client, userdata, msg):
        self._emit(self.on_message, msg.topic, msg.payload)

    # -- operations ---
    def connect(self) -> None:
        try:
            self.client.connect_async(self.config.broker, self.config.port,
                                      keepalive=self.config.keepalive)
            self.client.loop_start()
        except (OSError, ValueError) as e:
            raise TransportError(f"Failed to connect to {self.config.broker}: {e}")

    def subscribe(self, topic: str, qos: int = 0) -> None:
        result, _mid = self.client.subscribe(topic, qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(f"Failed to subscribe to {topic}: {mqtt.error_string(result)}")
        self.logger.info(f"Subscribed to topic: {topic}")

    def publish(self, topic: str, payload: bytes, qos: int = 0) -> None:
        info = self.client.publish(topic, payload, qos=qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(mqtt.error_string(info.rc))

    def disconnect(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()
        self.logger.info("MQTT client disconnected")
