"""Command channel interface for talking to build nodes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Sequence


class ChannelError(Exception):
    """Raised when a command could not be delivered to or run on a node."""

    pass


@dataclass
class CommandResult:
    """Outcome of a command run on a node."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class RemoteChannel(ABC):
    """Base class for all node channels."""

    @property
    @abstractmethod
    def is_unix(self) -> bool:
        """Whether the node runs a POSIX shell (False means Windows)."""
        pass

    @abstractmethod
    def run(
        self,
        command: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run a command on the node and wait for it to finish.

        Raises:
            ChannelError: If the command could not be started.
        """
        pass

    @abstractmethod
    def mkdirs(self, path: str) -> None:
        """Create a directory and its parents; no error if it exists."""
        pass
