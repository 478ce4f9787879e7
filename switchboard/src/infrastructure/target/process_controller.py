"""
Antigravity process control.

Finds running Antigravity processes by platform-specific rules, terminates
them, and launches the executable again.
"""

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import psutil

from ...domain.errors import ExecutableNotFoundError, ProcessControlError, ProcessNotFoundError
from .target_paths import detect_executable

logger = logging.getLogger("switchboard.process")


@dataclass(frozen=True)
class ProcessPattern:
    """Either an exact process name or a command-line substring."""
    exact_name: Optional[str] = None
    cmd_contains: Optional[str] = None

    def matches(self, name: str, cmdline: str) -> bool:
        if self.exact_name is not None and name == self.exact_name:
            return True
        if self.cmd_contains is not None and self.cmd_contains in cmdline:
            return True
        return False


def default_patterns(platform_name: str = sys.platform) -> List[ProcessPattern]:
    """Matching rules for the current platform."""
    if platform_name == "darwin":
        return [
            # Main Electron process has a generic name; match by path.
            ProcessPattern(cmd_contains="/Applications/Antigravity.app/Contents/MacOS/Electron"),
            ProcessPattern(cmd_contains="Antigravity.app/Contents/Frameworks/Antigravity Helper"),
        ]
    if platform_name == "win32":
        return [
            ProcessPattern(exact_name="Antigravity.exe"),
            ProcessPattern(exact_name="Antigravity"),
        ]
    if platform_name.startswith("linux"):
        return [
            ProcessPattern(exact_name="antigravity"),
            ProcessPattern(cmd_contains="Antigravity.AppImage"),
        ]
    return [ProcessPattern(exact_name="Antigravity")]


class ProcessController:
    """Find, terminate and launch the Antigravity process."""

    def __init__(self,
                 patterns: Optional[Sequence[ProcessPattern]] = None,
                 executable_resolver: Callable[[], Optional[Path]] = detect_executable,
                 terminate_timeout: float = 3.0):
        self.patterns = list(patterns) if patterns is not None else default_patterns()
        self._executable_resolver = executable_resolver
        self._terminate_timeout = terminate_timeout

    def _matches(self, name: str, cmdline: str) -> bool:
        return any(pattern.matches(name, cmdline) for pattern in self.patterns)

    def find_processes(self) -> List[psutil.Process]:
        """All running processes matching the configured patterns."""
        own_pid = os.getpid()
        found = []
        for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
            try:
                if proc.pid == own_pid:
                    continue
                name = proc.info.get('name') or ''
                cmdline = ' '.join(proc.info.get('cmdline') or [])
                if self._matches(name, cmdline):
                    found.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return found

    def is_running(self) -> bool:
        running = bool(self.find_processes())
        logger.debug(f"Antigravity running: {running}")
        return running

    def terminate_all(self) -> List[str]:
        """
        Terminate every matching process.

        Returns:
            Descriptions of terminated processes

        Raises:
            ProcessNotFoundError: no process matched
            ProcessControlError: processes matched but none could be stopped
        """
        targets = self.find_processes()
        if not targets:
            logger.info("No matching Antigravity processes found")
            raise ProcessNotFoundError("Antigravity process not found")

        descriptions = {}
        for proc in targets:
            try:
                descriptions[proc.pid] = f"{proc.name()} (PID: {proc.pid})"
                logger.info(f"Terminating {descriptions[proc.pid]}")
                proc.terminate()
            except psutil.NoSuchProcess:
                descriptions.setdefault(proc.pid, f"PID {proc.pid}")
            except psutil.AccessDenied as e:
                logger.warning(f"Access denied terminating PID {proc.pid}: {e}")

        _, alive = psutil.wait_procs(targets, timeout=self._terminate_timeout)
        for proc in alive:
            try:
                logger.warning(f"PID {proc.pid} still alive, killing")
                proc.kill()
            except psutil.NoSuchProcess:
                pass
            except psutil.AccessDenied as e:
                logger.error(f"Access denied killing PID {proc.pid}: {e}")

        still_alive = []
        if alive:
            _, still_alive = psutil.wait_procs(alive, timeout=self._terminate_timeout)
        survivors = {p.pid for p in still_alive}

        stopped = [descriptions.get(p.pid, f"PID {p.pid}") for p in targets if p.pid not in survivors]
        if not stopped:
            raise ProcessControlError(
                f"Failed to terminate Antigravity processes: {', '.join(descriptions.values())}"
            )
        if still_alive:
            logger.error(f"Processes survived termination: {[p.pid for p in still_alive]}")

        logger.info(f"Closed Antigravity processes: {', '.join(stopped)}")
        return stopped

    def launch(self) -> str:
        """
        Start Antigravity detached from this process.

        Raises:
            ExecutableNotFoundError: no executable could be located
            ProcessControlError: the process could not be spawned
        """
        executable = self._executable_resolver()
        if executable is None:
            raise ExecutableNotFoundError("Antigravity executable not found")

        logger.info(f"Launching Antigravity: {executable}")
        try:
            if sys.platform == "darwin" and str(executable).endswith(".app"):
                subprocess.Popen(["open", "-a", str(executable)],
                                 stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            elif sys.platform == "win32":
                flags = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
                subprocess.Popen([str(executable)], creationflags=flags, close_fds=True)
            else:
                subprocess.Popen([str(executable)], start_new_session=True,
                                 stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            raise ProcessControlError(f"Failed to start Antigravity: {e}") from e

        return f"Antigravity started: {executable}"
