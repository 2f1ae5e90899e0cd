"""Workspace recycling commands, one per node platform."""

import logging
import ntpath
from abc import ABC, abstractmethod
from typing import List

from diskguard.channels.base import ChannelError, RemoteChannel
from diskguard.shared.models import CleanupOutcome

from .build import BuildLog

logger = logging.getLogger(__name__)

# Runs with the workspace as working directory. Siblings are only removed
# when the workspace sits directly under a directory named "workspace".
# Entry names are compared as plain strings, never as patterns.
POSIX_RECYCLE_SCRIPT = """\
echo "$WORKSPACE"
current="$(pwd)"
name="$(basename "$current")"
parent="$(dirname "$current")"
if [ "$(basename "$parent")" = "workspace" ]; then
    cd "$parent"
    for entry in * .[!.]* ..?*; do
        [ -e "$entry" ] || [ -L "$entry" ] || continue
        [ "$entry" = "$name" ] || rm -rf -- "$entry"
    done
else
    echo "Could not delete workspace completely"
    true
fi
df -h . || true
cd "$current"
"""

WINDOWS_RECYCLE_SCRIPT = (
    'echo Deleting files from "%WORKSPACE%" && '
    'rmdir /S /Q "%WORKSPACE%" && '
    'mkdir "%WORKSPACE%"'
)


class CleanupCommand(ABC):
    """A platform-specific command that recycles workspace space."""

    description = "cleanup"

    @abstractmethod
    def command(self, workspace: str) -> List[str]:
        pass

    def working_directory(self, workspace: str) -> str:
        return workspace

    def run(self, channel: RemoteChannel, workspace: str, log: BuildLog) -> CleanupOutcome:
        """Run the cleanup on the node and echo its output to the build log."""
        logger.info(f"Running {self.description} for {workspace}")
        try:
            result = channel.run(
                self.command(workspace),
                cwd=self.working_directory(workspace),
                env={"WORKSPACE": workspace},
            )
        except ChannelError as e:
            log.println(f"Cleanup could not be started: {e}")
            logger.error(f"Cleanup failed to start for {workspace}: {e}")
            return CleanupOutcome(succeeded=False)

        for stream in (result.stdout, result.stderr):
            for line in stream.splitlines():
                log.println(line)

        if not result.succeeded:
            logger.error(
                f"Cleanup exited with {result.exit_code} for {workspace} "
                f"after {result.duration_ms} ms"
            )
        else:
            logger.info(f"Cleanup finished for {workspace} in {result.duration_ms} ms")
        return CleanupOutcome(succeeded=result.succeeded, exit_code=result.exit_code)


class PosixShellCleanup(CleanupCommand):
    description = "shell cleanup"

    def command(self, workspace: str) -> List[str]:
        return ["sh", "-xe", "-c", POSIX_RECYCLE_SCRIPT]


class WindowsBatchCleanup(CleanupCommand):
    description = "batch cleanup"

    def command(self, workspace: str) -> List[str]:
        return ["cmd", "/d", "/c", WINDOWS_RECYCLE_SCRIPT]

    def working_directory(self, workspace: str) -> str:
        # cmd cannot remove its own working directory
        return ntpath.dirname(workspace.rstrip("\\/")) or workspace


def select_cleanup(channel: RemoteChannel) -> CleanupCommand:
    """Pick the cleanup command matching the node's platform."""
    if channel.is_unix:
        return PosixShellCleanup()
    return WindowsBatchCleanup()
