"""Shared utilities for diskguard services."""

from .models import (
    BUILT_IN_NODE_LABEL,
    CleanupOutcome,
    ExecutionTarget,
    FreeSpaceReading,
    GuardConfig,
    ReadingSource,
)
from .disk_check import FreeSpaceParseError, bytes_to_gb, parse_free_space_output, round_half_away
from .config import load_yaml_config, get_config_path
from .mqtt import MQTTConfig, MQTTPublisher
from .logging import setup_logging

__all__ = [
    "BUILT_IN_NODE_LABEL",
    "CleanupOutcome",
    "ExecutionTarget",
    "FreeSpaceReading",
    "GuardConfig",
    "ReadingSource",
    "FreeSpaceParseError",
    "bytes_to_gb",
    "parse_free_space_output",
    "round_half_away",
    "load_yaml_config",
    "get_config_path",
    "MQTTConfig",
    "MQTTPublisher",
    "setup_logging",
]
