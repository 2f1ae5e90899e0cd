"""Core data models for disk space guarding."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .config import env_flag
from .disk_check import round_half_away

if TYPE_CHECKING:
    from diskguard.channels.base import RemoteChannel

# Label shown for builds that ran on the orchestrator's own node
BUILT_IN_NODE_LABEL = "built-in"


@dataclass(frozen=True)
class GuardConfig:
    """Threshold settings shared by every build."""
    threshold_gb: int = 1
    recycler_enabled: bool = False

    def __post_init__(self):
        if self.threshold_gb < 0:
            raise ValueError(f"threshold_gb must be >= 0, got {self.threshold_gb}")

    @classmethod
    def from_dict(cls, data: dict) -> "GuardConfig":
        """Create config from dictionary."""
        recycler_enabled = data.get("recycler_enabled", False)
        if isinstance(recycler_enabled, str):
            recycler_enabled = env_flag(recycler_enabled)
        return cls(
            threshold_gb=int(data.get("threshold_gb", 1)),
            recycler_enabled=bool(recycler_enabled),
        )


class ReadingSource(Enum):
    """Where a free space value came from."""
    REMOTE_EXPRESSION = "remote_expression"
    CACHED_MONITOR = "cached_monitor"


@dataclass(frozen=True)
class FreeSpaceReading:
    """Free space measured for one build."""
    gigabytes_free: float
    source: ReadingSource

    @property
    def rounded_gb(self) -> int:
        return round_half_away(self.gigabytes_free)


@dataclass
class ExecutionTarget:
    """The node a build runs on, its workspace and its command channel."""
    node_identity: str
    workspace_path: str
    channel: Optional["RemoteChannel"] = None

    @property
    def node_name(self) -> str:
        """Node name, with the built-in node's empty identity normalised."""
        return self.node_identity or BUILT_IN_NODE_LABEL

    @classmethod
    def for_build(cls, build, channel: Optional["RemoteChannel"] = None) -> "ExecutionTarget":
        """Create a target from a build's assigned node and workspace."""
        return cls(
            node_identity=build.built_on or "",
            workspace_path=build.workspace,
            channel=channel,
        )


@dataclass(frozen=True)
class CleanupOutcome:
    """Result of running a workspace cleanup command."""
    succeeded: bool
    exit_code: Optional[int] = None
