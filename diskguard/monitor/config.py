"""Configuration for the disk space monitor service."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from diskguard.channels import LocalChannel, RemoteChannel, SshChannel
from diskguard.shared.config import get_config_path, get_environment, load_yaml_config
from diskguard.shared.mqtt import MQTTConfig


@dataclass
class NodeConfig:
    """A build node to watch."""
    name: str
    path: str
    host: Optional[str] = None  # None means this machine
    user: Optional[str] = None
    port: int = 22
    os: str = "unix"

    @classmethod
    def from_dict(cls, data: dict) -> "NodeConfig":
        return cls(
            name=data["name"],
            path=data["path"],
            host=data.get("host"),
            user=data.get("user"),
            port=data.get("port", 22),
            os=data.get("os", "unix").lower(),
        )

    @property
    def is_unix(self) -> bool:
        return self.os != "windows"


@dataclass
class MonitorConfig:
    """Configuration for disk space monitoring."""

    nodes: List[NodeConfig] = field(default_factory=list)
    check_interval: float = 60.0  # seconds

    # MQTT settings
    mqtt: MQTTConfig = field(default_factory=lambda: MQTTConfig(client_id="diskguard-monitor"))
    topic: str = "diskguard/nodes"

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict) -> "MonitorConfig":
        """Create config from dictionary."""
        mqtt_data = {"client_id": "diskguard-monitor", **data.get("mqtt", {})}

        return cls(
            nodes=[NodeConfig.from_dict(node) for node in data.get("nodes", [])],
            check_interval=data.get("check_interval", 60.0),
            mqtt=MQTTConfig.from_dict(mqtt_data),
            topic=data.get("topic", "diskguard/nodes"),
            log_level=data.get("log_level", "INFO"),
        )


def channel_for_node(node: NodeConfig) -> RemoteChannel:
    """Open the channel a node is reached through."""
    if node.host is None:
        return LocalChannel(is_unix=node.is_unix)
    return SshChannel(node.host, user=node.user, port=node.port, is_unix=node.is_unix)


def load_config(config_path: Optional[str] = None) -> MonitorConfig:
    """Load configuration from YAML file or environment.

    Args:
        config_path: Path to YAML config file. If not provided,
                    looks for DISKGUARD_MONITOR_CONFIG env var, then
                    config/monitor-{DISKGUARD_ENV}.yaml, then defaults.

    Returns:
        MonitorConfig instance.
    """
    load_dotenv()

    if config_path is None:
        config_path = os.environ.get("DISKGUARD_MONITOR_CONFIG") or str(
            get_config_path(f"monitor-{get_environment()}.yaml")
        )

    if config_path and os.path.exists(config_path):
        return MonitorConfig.from_dict(load_yaml_config(config_path, load_env=False))

    # Environment variable overrides
    config = MonitorConfig()

    if mqtt_broker := os.environ.get("MQTT_BROKER"):
        config.mqtt.broker = mqtt_broker
    if log_level := os.environ.get("LOG_LEVEL"):
        config.log_level = log_level

    return config
