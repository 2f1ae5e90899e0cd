"""Channel that runs commands on this machine."""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Dict, Optional, Sequence

from .base import ChannelError, CommandResult, RemoteChannel

logger = logging.getLogger(__name__)


class LocalChannel(RemoteChannel):
    def __init__(self, is_unix: Optional[bool] = None):
        self._is_unix = os.name != "nt" if is_unix is None else is_unix

    @property
    def is_unix(self) -> bool:
        return self._is_unix

    def run(
        self,
        command: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        start = time.monotonic()
        try:
            process = subprocess.run(
                list(command),
                cwd=cwd,
                env=self._merge_env(env),
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ChannelError(f"Could not run {command[0]}: {e}") from e

        duration_ms = int((time.monotonic() - start) * 1000)
        return CommandResult(
            exit_code=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
            duration_ms=duration_ms,
        )

    def mkdirs(self, path: str) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ChannelError(f"Could not create {path}: {e}") from e

    @staticmethod
    def _merge_env(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if not env:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged
