import os
import shutil

import pytest

from conftest import BrokenChannel, FakeChannel

from diskguard.channels import LocalChannel
from diskguard.guard.cleanup import (
    POSIX_RECYCLE_SCRIPT,
    PosixShellCleanup,
    WindowsBatchCleanup,
    select_cleanup,
)

posix_only = pytest.mark.skipif(
    os.name != "posix" or shutil.which("sh") is None, reason="needs a POSIX shell"
)


def test_select_cleanup_by_platform():
    assert isinstance(select_cleanup(FakeChannel(is_unix=True)), PosixShellCleanup)
    assert isinstance(select_cleanup(FakeChannel(is_unix=False)), WindowsBatchCleanup)


def test_posix_command_runs_script_with_errexit():
    command = PosixShellCleanup().command("/ci/workspace/job")
    assert command == ["sh", "-xe", "-c", POSIX_RECYCLE_SCRIPT]


def test_windows_command_runs_from_parent():
    cleanup = WindowsBatchCleanup()
    assert cleanup.command("C:\\ci\\workspace\\job")[:3] == ["cmd", "/d", "/c"]
    script = cleanup.command("C:\\ci\\workspace\\job")[-1]
    assert 'rmdir /S /Q "%WORKSPACE%"' in script
    assert 'mkdir "%WORKSPACE%"' in script
    assert cleanup.working_directory("C:\\ci\\workspace\\job\\") == "C:\\ci\\workspace"


def test_run_reports_exit_code(build_log):
    outcome = PosixShellCleanup().run(FakeChannel(cleanup_exit_code=3), "/ws", build_log)
    assert not outcome.succeeded
    assert outcome.exit_code == 3


def test_run_echoes_output(build_log, console_output):
    outcome = PosixShellCleanup().run(FakeChannel(), "/ws", build_log)
    assert outcome.succeeded
    assert "cleanup output" in console_output.getvalue()


def test_channel_error_is_a_failed_cleanup(build_log):
    outcome = PosixShellCleanup().run(BrokenChannel(), "/ws", build_log)
    assert not outcome.succeeded
    assert outcome.exit_code is None


@posix_only
class TestPosixRecycle:
    def _tree(self, root):
        workspace = root / "workspace" / "job"
        (workspace / "src").mkdir(parents=True)
        (workspace / "src" / "main.c").write_text("int main;")
        (root / "workspace" / "other-job" / "build").mkdir(parents=True)
        (root / "workspace" / "other-job" / "build" / "out.o").write_text("x")
        (root / "workspace" / "stale@tmp").mkdir()
        (root / "workspace" / "loose.log").write_text("log")
        return workspace

    def test_removes_siblings_and_keeps_workspace(self, tmp_path, build_log):
        workspace = self._tree(tmp_path)

        outcome = PosixShellCleanup().run(LocalChannel(), str(workspace), build_log)

        assert outcome.succeeded
        assert sorted(p.name for p in (tmp_path / "workspace").iterdir()) == ["job"]
        assert (workspace / "src" / "main.c").read_text() == "int main;"

    def test_leaves_tree_alone_outside_workspace_directory(self, tmp_path, build_log, console_output):
        workspace = tmp_path / "builds" / "job"
        workspace.mkdir(parents=True)
        (tmp_path / "builds" / "neighbour").mkdir()

        outcome = PosixShellCleanup().run(LocalChannel(), str(workspace), build_log)

        assert outcome.succeeded
        assert (tmp_path / "builds" / "neighbour").is_dir()
        assert "Could not delete workspace completely" in console_output.getvalue()

    def test_workspace_name_with_glob_characters_is_kept(self, tmp_path, build_log):
        workspace = tmp_path / "workspace" / "job[1]"
        (workspace / "src").mkdir(parents=True)
        (tmp_path / "workspace" / "job1").mkdir()
        (tmp_path / "workspace" / "other").mkdir()
        (tmp_path / "workspace" / ".hidden").write_text("x")

        outcome = PosixShellCleanup().run(LocalChannel(), str(workspace), build_log)

        assert outcome.succeeded
        assert sorted(p.name for p in (tmp_path / "workspace").iterdir()) == ["job[1]"]
        assert (workspace / "src").is_dir()

    def test_relative_workspace_removes_siblings(self, tmp_path, build_log, monkeypatch):
        workspace = self._tree(tmp_path)
        monkeypatch.chdir(tmp_path / "workspace")

        outcome = PosixShellCleanup().run(LocalChannel(), "job", build_log)

        assert outcome.succeeded
        assert sorted(p.name for p in (tmp_path / "workspace").iterdir()) == ["job"]
        assert (workspace / "src" / "main.c").read_text() == "int main;"


def test_run_logs_duration(build_log, caplog):
    channel = FakeChannel()
    with caplog.at_level("INFO", logger="diskguard.guard.cleanup"):
        PosixShellCleanup().run(channel, "/ws", build_log)
    assert "Cleanup finished for /ws in 0 ms" in caplog.text
