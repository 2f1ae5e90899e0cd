"""Shared fakes for diskguard tests."""

import io
from typing import Dict, List, Optional, Sequence

import pytest
from rich.console import Console

from diskguard.channels.base import ChannelError, CommandResult, RemoteChannel
from diskguard.guard.build import Build, BuildLog
from diskguard.shared.cache import MonitorCache

GB = 1024**3


class FakeChannel(RemoteChannel):
    """Channel that answers free space queries and records every command."""

    def __init__(
        self,
        free_bytes: Optional[int] = None,
        is_unix: bool = True,
        cleanup_exit_code: int = 0,
        query_error: Optional[Exception] = None,
        query_output: Optional[str] = None,
    ):
        self._is_unix = is_unix
        self.free_bytes = free_bytes
        self.cleanup_exit_code = cleanup_exit_code
        self.query_error = query_error
        self.query_output = query_output
        self.commands: List[dict] = []
        self.created: List[str] = []

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
        self.commands.append({"command": list(command), "cwd": cwd, "env": env})

        if command[0] in ("sh", "powershell") and "-xe" not in command:
            if self.query_error:
                raise self.query_error
            if self.query_output is not None:
                return CommandResult(exit_code=0, stdout=self.query_output)
            if self.free_bytes is None:
                return CommandResult(exit_code=1, stderr="df: not found")
            return CommandResult(exit_code=0, stdout=f"Result: {self.free_bytes}\n")

        return CommandResult(
            exit_code=self.cleanup_exit_code,
            stdout="cleanup output\n",
            stderr="" if self.cleanup_exit_code == 0 else "rm: permission denied\n",
        )

    def mkdirs(self, path: str) -> None:
        self.created.append(path)

    @property
    def cleanup_commands(self) -> List[dict]:
        return [c for c in self.commands if c["command"][0] in ("cmd",) or "-xe" in c["command"]]


class BrokenChannel(FakeChannel):
    def run(self, command, cwd=None, env=None, timeout=None):
        raise ChannelError("connection reset")

    def mkdirs(self, path: str) -> None:
        raise ChannelError("connection reset")


class FakeCache(MonitorCache):
    """Cache returning scripted values, one per lookup."""

    def __init__(self, *values: Optional[int]):
        self.values = list(values)
        self.lookups: List[str] = []

    def get(self, node_name: str) -> Optional[int]:
        self.lookups.append(node_name)
        if not self.values:
            return None
        if len(self.values) == 1:
            return self.values[0]
        return self.values.pop(0)


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def console_output():
    return io.StringIO()


@pytest.fixture
def build_log(console_output):
    return BuildLog(Console(file=console_output, width=200, soft_wrap=True, color_system=None))


@pytest.fixture
def make_build(build_log):
    def _make(workspace: str = "/var/ci/workspace/job", built_on: str = "linux-01") -> Build:
        return Build(workspace=workspace, built_on=built_on, log=build_log)

    return _make


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()
