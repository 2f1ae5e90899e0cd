"""Configuration for the pre-checkout guard."""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from diskguard.shared.config import env_flag, get_config_path, load_yaml_config
from diskguard.shared.models import GuardConfig
from diskguard.shared.mqtt import MQTTConfig


@dataclass
class GuardSettings:
    """Process-wide guard settings, loaded once at startup."""

    guard: GuardConfig = field(default_factory=GuardConfig)

    # Cached monitor fallback
    monitor_retry_delay: float = 1.0  # seconds, one monitor cycle
    monitor_topic: str = "diskguard/nodes"

    # MQTT settings
    mqtt_enabled: bool = False
    mqtt: MQTTConfig = field(default_factory=lambda: MQTTConfig(client_id="diskguard-check"))
    decision_topic: str = "diskguard/builds"

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict) -> "GuardSettings":
        """Create settings from dictionary."""
        mqtt_data = {"client_id": "diskguard-check", **data.get("mqtt", {})}

        return cls(
            guard=GuardConfig.from_dict(data),
            monitor_retry_delay=float(data.get("monitor_retry_delay", 1.0)),
            monitor_topic=data.get("monitor_topic", "diskguard/nodes"),
            mqtt_enabled=data.get("mqtt_enabled", False),
            mqtt=MQTTConfig.from_dict(mqtt_data),
            decision_topic=data.get("decision_topic", "diskguard/builds"),
            log_level=data.get("log_level", "INFO"),
        )


def load_config(config_path: Optional[str] = None) -> GuardSettings:
    """Load guard settings from YAML file and environment.

    Args:
        config_path: Path to YAML config file. If not provided,
                    looks for DISKGUARD_CONFIG env var, then
                    config/config-{DISKGUARD_ENV}.yaml, then defaults.

    Returns:
        GuardSettings instance.
    """
    load_dotenv()

    if config_path is None:
        config_path = os.environ.get("DISKGUARD_CONFIG") or str(get_config_path())

    if config_path and os.path.exists(config_path):
        settings = GuardSettings.from_dict(load_yaml_config(config_path, load_env=False))
    else:
        settings = GuardSettings()

    # Environment variable overrides
    threshold = os.environ.get("DISKGUARD_THRESHOLD_GB")
    recycler = os.environ.get("DISKGUARD_RECYCLER_ENABLED")
    if threshold is not None or recycler is not None:
        settings.guard = GuardConfig(
            threshold_gb=int(threshold) if threshold is not None else settings.guard.threshold_gb,
            recycler_enabled=(
                env_flag(recycler) if recycler is not None else settings.guard.recycler_enabled
            ),
        )
    if mqtt_broker := os.environ.get("MQTT_BROKER"):
        settings.mqtt.broker = mqtt_broker
        settings.mqtt_enabled = True
    if log_level := os.environ.get("LOG_LEVEL"):
        settings.log_level = log_level

    return settings
