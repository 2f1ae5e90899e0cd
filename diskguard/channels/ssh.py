"""Channel that runs commands on a node over ssh."""

import logging
import shlex
import subprocess
import time
from typing import Dict, List, Optional, Sequence

from .base import ChannelError, CommandResult, RemoteChannel

logger = logging.getLogger(__name__)


class SshChannel(RemoteChannel):
    """Runs commands through the system ssh client.

    Authentication is left to the ssh client configuration (keys, agent,
    ~/.ssh/config). BatchMode is always on so a missing key fails fast
    instead of prompting.
    """

    def __init__(
        self,
        host: str,
        user: Optional[str] = None,
        port: int = 22,
        is_unix: bool = True,
        ssh_options: Sequence[str] = (),
    ):
        self.host = host
        self.user = user
        self.port = port
        self._is_unix = is_unix
        self.ssh_options = list(ssh_options)

    @property
    def is_unix(self) -> bool:
        return self._is_unix

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}" if self.user else self.host

    def build_command(
        self,
        command: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> List[str]:
        """Wrap a command into the ssh invocation that runs it remotely."""
        if self._is_unix:
            remote = shlex.join(command)
            if env:
                assignments = " ".join(f"{k}={shlex.quote(v)}" for k, v in env.items())
                remote = f"env {assignments} {remote}"
            if cwd:
                remote = f"cd {shlex.quote(cwd)} && {remote}"
        else:
            remote = subprocess.list2cmdline(list(command))
            if env:
                assignments = "".join(f"set {k}={v}&& " for k, v in env.items())
                remote = f"{assignments}{remote}"
            if cwd:
                remote = f'cd /d "{cwd}" && {remote}'

        return [
            "ssh",
            "-o", "BatchMode=yes",
            "-p", str(self.port),
            *self.ssh_options,
            self.destination,
            remote,
        ]

    def run(
        self,
        command: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        ssh_command = self.build_command(command, cwd=cwd, env=env)
        logger.debug(f"Running on {self.destination}: {ssh_command[-1]}")

        start = time.monotonic()
        try:
            process = subprocess.run(
                ssh_command,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ChannelError(f"ssh to {self.destination} failed: {e}") from e

        # ssh reserves 255 for its own connection errors
        if process.returncode == 255:
            raise ChannelError(
                f"ssh to {self.destination} failed: {process.stderr.strip()}"
            )

        duration_ms = int((time.monotonic() - start) * 1000)
        return CommandResult(
            exit_code=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
            duration_ms=duration_ms,
        )

    def mkdirs(self, path: str) -> None:
        if self._is_unix:
            command = ["mkdir", "-p", path]
        else:
            command = ["cmd", "/d", "/c", f'if not exist "{path}" mkdir "{path}"']
        result = self.run(command)
        if not result.succeeded:
            raise ChannelError(
                f"Could not create {path} on {self.destination}: {result.stderr.strip()}"
            )
