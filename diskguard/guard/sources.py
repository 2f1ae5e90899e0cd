"""Free space sources the guard can measure a node with.

Two interchangeable strategies sit behind FreeSpaceSource:

* RemoteExpressionSource asks the node itself through its command channel.
* CachedMonitorSource reads what the background monitor last collected for
  the node, retrying once after one collector cycle if nothing is cached yet.

Sources never raise for expected failures; they return a FreeSpaceResult
carrying a GuardError so the caller decides what the failure means.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from diskguard.channels.base import ChannelError, RemoteChannel
from diskguard.shared.cache import MonitorCache
from diskguard.shared.disk_check import bytes_to_gb, parse_free_space_output
from diskguard.shared.models import ExecutionTarget, FreeSpaceReading, ReadingSource

logger = logging.getLogger(__name__)

# One collection cycle of the background monitor
DEFAULT_RETRY_DELAY = 1.0

_POSIX_FREE_SPACE_SCRIPT = (
    "df -Pk \"$1\" | awk 'NR==2 {printf \"Result: %.0f\\n\", $4 * 1024}'"
)


class GuardError(Enum):
    """Reasons free space could not be determined."""
    REMOTE_QUERY_UNAVAILABLE = "remote_query_unavailable"
    MONITOR_DATA_UNAVAILABLE = "monitor_data_unavailable"
    UNEXPECTED_INTERNAL_ERROR = "unexpected_internal_error"


@dataclass(frozen=True)
class FreeSpaceResult:
    """Either a reading or the error that prevented one."""
    reading: Optional[FreeSpaceReading] = None
    error: Optional[GuardError] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reading is not None

    @classmethod
    def success(cls, reading: FreeSpaceReading) -> "FreeSpaceResult":
        return cls(reading=reading)

    @classmethod
    def failure(cls, error: GuardError, detail: str = "") -> "FreeSpaceResult":
        return cls(error=error, detail=detail)


def free_space_command(path: str, is_unix: bool) -> List[str]:
    """Build the command that prints "Result: <free bytes>" for a path."""
    if is_unix:
        return ["sh", "-c", _POSIX_FREE_SPACE_SCRIPT, "sh", path]

    quoted = path.replace("'", "''")
    return [
        "powershell",
        "-NoProfile",
        "-NonInteractive",
        "-Command",
        f"'Result: ' + (Get-Item -LiteralPath '{quoted}').PSDrive.Free",
    ]


def query_free_space_bytes(channel: RemoteChannel, path: str) -> int:
    """Ask a node how many bytes are free on the filesystem holding path.

    Raises:
        ChannelError: If the command could not run or exited non-zero.
        FreeSpaceParseError: If the response holds no number.
    """
    result = channel.run(free_space_command(path, channel.is_unix))
    logger.debug(f"Free space query for {path} took {result.duration_ms} ms")
    if not result.succeeded:
        raise ChannelError(
            f"Free space command exited with {result.exit_code}: {result.stderr.strip()}"
        )
    return parse_free_space_output(result.stdout)


class FreeSpaceSource(ABC):
    """Base class for all free space sources."""

    name = "source"

    @abstractmethod
    def measure(self, target: ExecutionTarget) -> FreeSpaceResult:
        """Measure free space for the target's workspace."""
        pass


class RemoteExpressionSource(FreeSpaceSource):
    name = "remote expression"

    def measure(self, target: ExecutionTarget) -> FreeSpaceResult:
        if target.channel is None:
            return FreeSpaceResult.failure(
                GuardError.REMOTE_QUERY_UNAVAILABLE,
                f"No channel to node {target.node_name}",
            )

        try:
            free_bytes = query_free_space_bytes(target.channel, target.workspace_path)
        except Exception as e:
            logger.warning(f"Remote free space query failed on {target.node_name}: {e}")
            return FreeSpaceResult.failure(GuardError.REMOTE_QUERY_UNAVAILABLE, str(e))

        return FreeSpaceResult.success(
            FreeSpaceReading(bytes_to_gb(free_bytes), ReadingSource.REMOTE_EXPRESSION)
        )


class CachedMonitorSource(FreeSpaceSource):
    name = "cached monitor"

    def __init__(
        self,
        cache: MonitorCache,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cache = cache
        self.retry_delay = retry_delay
        self._sleep = sleep

    def measure(self, target: ExecutionTarget) -> FreeSpaceResult:
        node_name = target.node_name
        free_bytes = self.cache.get(node_name)

        if free_bytes is None:
            logger.debug(
                f"No monitor data for {node_name} yet, retrying in {self.retry_delay}s"
            )
            self._sleep(self.retry_delay)
            free_bytes = self.cache.get(node_name)

        if free_bytes is None:
            return FreeSpaceResult.failure(
                GuardError.MONITOR_DATA_UNAVAILABLE,
                f"No monitor data for node {node_name}",
            )

        return FreeSpaceResult.success(
            FreeSpaceReading(bytes_to_gb(free_bytes), ReadingSource.CACHED_MONITOR)
        )
