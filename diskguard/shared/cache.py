"""Free space cache filled by the background disk space monitor."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

from .mqtt import MQTTConfig, parse_payload

logger = logging.getLogger(__name__)


class MonitorCache(ABC):
    """Last known free space per node, in bytes."""

    @abstractmethod
    def get(self, node_name: str) -> Optional[int]:
        """Return cached free bytes for a node, or None if never collected."""
        pass


class InMemoryMonitorCache(MonitorCache):
    def __init__(self):
        self._sizes: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, node_name: str) -> Optional[int]:
        with self._lock:
            return self._sizes.get(node_name)

    def update(self, node_name: str, free_bytes: int) -> None:
        with self._lock:
            self._sizes[node_name] = free_bytes

    def clear(self) -> None:
        with self._lock:
            self._sizes.clear()


class MQTTMonitorCache(InMemoryMonitorCache):
    """Cache fed by retained monitor messages on {topic}/<node>/free_space."""

    def __init__(self, config: MQTTConfig, topic: str = "diskguard/nodes"):
        super().__init__()
        self.config = config
        self.topic = topic.rstrip("/")
        self.client: Optional[mqtt.Client] = None
        self._subscribed = threading.Event()

    def _on_connect(self, client: mqtt.Client, userdata, flags, reason_code, properties):
        if reason_code == 0:
            pattern = f"{self.topic}/+/free_space"
            client.subscribe(pattern, qos=self.config.qos)
            logger.info(f"Subscribed to: {pattern}")
            self._subscribed.set()
        else:
            logger.error(f"Failed to connect to MQTT broker, reason: {reason_code}")

    def _on_message(self, client: mqtt.Client, userdata, msg: mqtt.MQTTMessage):
        try:
            self._process_message(msg.topic, msg.payload)
        except Exception as e:
            logger.error(f"Error processing message from {msg.topic}: {e}")

    def _process_message(self, topic: str, payload: bytes) -> None:
        """Store the free bytes carried by a monitor message.

        Args:
            topic: The MQTT topic (e.g., "diskguard/nodes/linux-01/free_space")
            payload: The message payload (JSON bytes)
        """
        prefix = f"{self.topic}/"
        if not topic.startswith(prefix) or not topic.endswith("/free_space"):
            logger.debug(f"Ignoring topic with unexpected format: {topic}")
            return

        node_name = topic[len(prefix):-len("/free_space")]
        if not node_name or "/" in node_name:
            logger.debug(f"Ignoring topic with unexpected format: {topic}")
            return

        try:
            data = parse_payload(payload.decode("utf-8"))
        except UnicodeDecodeError as e:
            logger.warning(f"Failed to decode payload from {topic}: {e}")
            return

        if not data or data.get("value") is None:
            logger.warning(f"Missing value in payload from {topic}")
            return

        try:
            free_bytes = int(data["value"])
        except (TypeError, ValueError):
            logger.warning(f"Non-numeric free space from {topic}: {data['value']!r}")
            return

        self.update(node_name, free_bytes)
        logger.debug(f"Cached {free_bytes} free bytes for {node_name}")

    def start(self, timeout: float = 5.0) -> bool:
        """Connect and subscribe; retained messages arrive in the background.

        Returns:
            True if the subscription was made within timeout.
        """
        self._subscribed.clear()
        self.client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=f"{self.config.client_id}-cache",
        )
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message

        try:
            self.client.connect(self.config.broker, self.config.port, keepalive=self.config.keepalive)
            self.client.loop_start()
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            self.client = None
            return False

        if not self._subscribed.wait(timeout=timeout):
            logger.warning("Timeout waiting for monitor cache subscription")
            return False
        return True

    def stop(self) -> None:
        if self.client:
            self.client.loop_stop()
            self.client.disconnect()
            self.client = None
