"""
Tests for ProcessController with psutil replaced by fakes.
"""

import os
from unittest.mock import patch

import psutil
import pytest

from switchboard.src.domain.errors import ExecutableNotFoundError, ProcessControlError, ProcessNotFoundError
from switchboard.src.infrastructure.target.process_controller import (
    ProcessController,
    ProcessPattern,
    default_patterns,
)


class FakeProcess:
    def __init__(self, pid, name, cmdline=(), refuses=False):
        self.pid = pid
        self.info = {'pid': pid, 'name': name, 'cmdline': list(cmdline)}
        self.refuses = refuses
        self.terminated = False
        self.killed = False

    def name(self):
        return self.info['name']

    def terminate(self):
        if self.refuses:
            raise psutil.AccessDenied(self.pid)
        self.terminated = True

    def kill(self):
        if self.refuses:
            raise psutil.AccessDenied(self.pid)
        self.killed = True


@pytest.fixture
def fake_psutil(monkeypatch):
    processes = []

    def wait_procs(procs, timeout=None):
        gone = [p for p in procs if p.terminated or p.killed]
        alive = [p for p in procs if not (p.terminated or p.killed)]
        return gone, alive

    monkeypatch.setattr(psutil, "process_iter", lambda attrs=None: iter(processes))
    monkeypatch.setattr(psutil, "wait_procs", wait_procs)
    return processes


LINUX = default_patterns("linux")


class TestPatterns:

    def test_exact_name_and_cmdline_substring(self):
        assert ProcessPattern(exact_name="antigravity").matches("antigravity", "")
        assert not ProcessPattern(exact_name="antigravity").matches("antigravity-helper", "")
        assert ProcessPattern(cmd_contains="Antigravity.AppImage").matches(
            "AppRun", "/home/u/Applications/Antigravity.AppImage --no-sandbox")

    def test_macos_matches_by_bundle_path(self):
        patterns = default_patterns("darwin")
        cmdline = "/Applications/Antigravity.app/Contents/MacOS/Electron"
        assert any(p.matches("Electron", cmdline) for p in patterns)
        assert not any(p.matches("Electron", "/Applications/Other.app/Contents/MacOS/Electron")
                       for p in patterns)

    def test_windows_names(self):
        patterns = default_patterns("win32")
        assert any(p.matches("Antigravity.exe", "") for p in patterns)


class TestFindAndTerminate:

    def test_find_skips_own_process_and_unrelated(self, fake_psutil):
        fake_psutil.extend([
            FakeProcess(os.getpid(), "antigravity"),
            FakeProcess(100, "antigravity"),
            FakeProcess(101, "bash"),
        ])
        controller = ProcessController(patterns=LINUX)

        assert [p.pid for p in controller.find_processes()] == [100]
        assert controller.is_running()

    def test_terminate_without_matches_raises_not_found(self, fake_psutil):
        fake_psutil.append(FakeProcess(101, "bash"))
        with pytest.raises(ProcessNotFoundError):
            ProcessController(patterns=LINUX).terminate_all()

    def test_terminate_reports_stopped_processes(self, fake_psutil):
        first = FakeProcess(100, "antigravity")
        second = FakeProcess(102, "AppRun", ["/opt/Antigravity.AppImage"])
        fake_psutil.extend([first, second])

        stopped = ProcessController(patterns=LINUX).terminate_all()

        assert stopped == ["antigravity (PID: 100)", "AppRun (PID: 102)"]
        assert first.terminated and second.terminated

    def test_terminate_fails_when_nothing_could_be_stopped(self, fake_psutil):
        fake_psutil.append(FakeProcess(100, "antigravity", refuses=True))
        with pytest.raises(ProcessControlError):
            ProcessController(patterns=LINUX, terminate_timeout=0).terminate_all()


class TestLaunch:

    def test_missing_executable_raises(self):
        controller = ProcessController(patterns=LINUX, executable_resolver=lambda: None)
        with pytest.raises(ExecutableNotFoundError):
            controller.launch()

    def test_launch_spawns_detached_process(self, tmp_path):
        executable = tmp_path / "antigravity"
        executable.write_text("", encoding="utf-8")
        controller = ProcessController(patterns=LINUX, executable_resolver=lambda: executable)

        with patch("switchboard.src.infrastructure.target.process_controller.sys.platform", "linux"), \
                patch("switchboard.src.infrastructure.target.process_controller.subprocess.Popen") as popen:
            message = controller.launch()

        assert message == f"Antigravity started: {executable}"
        args, kwargs = popen.call_args
        assert args[0] == [str(executable)]
        assert kwargs["start_new_session"] is True

    def test_spawn_failure_is_process_control_error(self, tmp_path):
        controller = ProcessController(patterns=LINUX, executable_resolver=lambda: tmp_path / "antigravity")

        with patch("switchboard.src.infrastructure.target.process_controller.sys.platform", "linux"), \
                patch("switchboard.src.infrastructure.target.process_controller.subprocess.Popen",
                      side_effect=OSError("permission denied")):
            with pytest.raises(ProcessControlError):
                controller.launch()
