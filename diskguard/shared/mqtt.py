"""MQTT configuration, payloads and publishing."""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

logger = logging.getLogger(__name__)


@dataclass
class MQTTConfig:
    """MQTT broker configuration."""
    broker: str = "localhost"
    port: int = 1883
    client_id: str = "diskguard"
    keepalive: int = 60
    qos: int = 1

    @classmethod
    def from_dict(cls, data: dict) -> "MQTTConfig":
        """Create config from dictionary."""
        return cls(
            broker=data.get("broker", "localhost"),
            port=data.get("port", 1883),
            client_id=data.get("client_id", "diskguard"),
            keepalive=data.get("keepalive", 60),
            qos=data.get("qos", 1),
        )


def create_payload(
    value: Any,
    unit: Optional[str],
    sensor_id: str,
    timestamp: Optional[float] = None,
) -> str:
    """Create a standardized MQTT payload.

    Args:
        value: The measured value.
        unit: Unit of measurement (e.g., 'B').
        sensor_id: Identifier of the publisher.
        timestamp: Unix timestamp (defaults to current time).

    Returns:
        JSON string payload.
    """
    return json.dumps({
        "value": value,
        "unit": unit,
        "ts": timestamp or time.time(),
        "sensor": sensor_id,
    })


def parse_payload(payload: str) -> Optional[Dict[str, Any]]:
    """Parse a payload from an MQTT message.

    Args:
        payload: JSON string or plain value.

    Returns:
        Dictionary with 'value', 'unit', 'ts', 'sensor' keys,
        or None if parsing fails.
    """
    try:
        data = json.loads(payload)
        if isinstance(data, dict):
            return data
        return {"value": float(data), "unit": None, "ts": time.time(), "sensor": None}
    except (json.JSONDecodeError, ValueError, TypeError):
        try:
            return {"value": float(payload), "unit": None, "ts": time.time(), "sensor": None}
        except (ValueError, TypeError):
            logger.warning(f"Could not parse MQTT payload: {payload}")
            return None


class MQTTPublisher:
    """Publishes JSON payloads to an MQTT broker."""

    def __init__(self, config: MQTTConfig):
        """Initialize MQTT publisher.

        Args:
            config: MQTT configuration.
        """
        self.config = config
        self.client: Optional[mqtt.Client] = None
        self._connected = False
        self._connect_event = threading.Event()

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code == 0:
            logger.info(
                f"Connected to MQTT broker at {self.config.broker}:{self.config.port}"
            )
            self._connected = True
        else:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            self._connected = False
        self._connect_event.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        self._connected = False
        if reason_code != 0:
            logger.warning(f"Unexpected MQTT disconnection (reason={reason_code})")
        else:
            logger.info("Disconnected from MQTT broker")

    def connect(self, timeout: float = 10.0) -> bool:
        """Connect to the MQTT broker.

        Args:
            timeout: Timeout in seconds to wait for connection.

        Returns:
            True if connected successfully, False otherwise.
        """
        self._connect_event.clear()

        self.client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=self.config.client_id,
        )
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        logger.info(
            f"Connecting to MQTT broker at {self.config.broker}:{self.config.port}"
        )

        try:
            self.client.connect(self.config.broker, self.config.port, keepalive=self.config.keepalive)
            self.client.loop_start()

            if self._connect_event.wait(timeout=timeout):
                return self._connected
            else:
                logger.error("Timeout waiting for MQTT connection")
                return False
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            return False

    def disconnect(self):
        """Disconnect from the MQTT broker."""
        if self.client:
            self.client.loop_stop()
            self.client.disconnect()
            self.client = None
            self._connected = False

    def publish(self, topic: str, payload: str, retain: bool = False) -> bool:
        """Publish a payload.

        Args:
            topic: Destination topic.
            payload: Serialized payload.
            retain: Ask the broker to keep the message for late subscribers.

        Returns:
            True if the message was handed to the client, False otherwise.
        """
        if not self._connected or not self.client:
            logger.warning("Not connected to MQTT broker, cannot publish")
            return False

        result = self.client.publish(topic, payload, qos=self.config.qos, retain=retain)
        if result.rc == mqtt.MQTT_ERR_SUCCESS:
            logger.debug(f"Published to {topic}: {payload}")
            return True
        logger.warning(f"Failed to publish to {topic}: rc={result.rc}")
        return False
