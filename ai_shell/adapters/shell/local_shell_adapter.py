"""
Local shell adapters: command execution, environment detection and shell history.
"""

import logging
import os
import platform
import subprocess
import time
from pathlib import Path
from typing import Optional

from typing_extensions import override

from ai_shell.exceptions import CommandExecutionError
from ai_shell.ports.shell.shell_port import (
    CommandExecutorPort,
    ExecutionOutput,
    ShellHistoryPort,
)


def detect_shell() -> str:
    """Return the name of the user's shell."""
    shell = os.environ.get("SHELL")
    if shell:
        return Path(shell).name
    if os.name == "nt":
        if os.environ.get("PSModulePath"):
            return "powershell"
        comspec = os.environ.get("COMSPEC")
        return Path(comspec).name if comspec else "cmd.exe"
    return "sh"


def detect_operating_system() -> str:
    """Return a human readable operating system name."""
    system = platform.system()
    if system == "Darwin":
        return f"macOS {platform.mac_ver()[0]}".strip()
    if system == "Linux":
        try:
            info = platform.freedesktop_os_release()
            return info.get("PRETTY_NAME") or info.get("NAME") or system
        except OSError:
            return system
    if system == "Windows":
        return f"Windows {platform.release()}".strip()
    return system or "Unknown"


class LocalCommandExecutor(CommandExecutorPort):
    """Run commands through the user's shell with captured output."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)

    @override
    def execute(self, command: str) -> ExecutionOutput:
        shell = os.environ.get("SHELL") if os.name != "nt" else None
        self._logger.info(f"Executing command: {command}")
        try:
            completed = subprocess.run(
                command,
                shell=True,
                executable=shell or None,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            self._logger.error(f"Error executing command: {e}")
            raise CommandExecutionError(f"Failed to execute '{command}': {str(e)}")
        self._logger.info(f"Command exited with code {completed.returncode}")
        return ExecutionOutput(
            completed.returncode, completed.stdout or "", completed.stderr or ""
        )

    @override
    def describe_environment(self) -> tuple[str, str]:
        return detect_shell(), detect_operating_system()


class ShellHistoryFile(ShellHistoryPort):
    """Append executed commands to the history file of the user's shell."""

    def __init__(
        self,
        shell: Optional[str] = None,
        home: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._shell = shell or detect_shell()
        self._home = home or Path.home()
        self._logger = logger or logging.getLogger(__name__)

    def history_path(self) -> Optional[Path]:
        histfile = os.environ.get("HISTFILE")
        if self._shell in ("bash", "zsh") and histfile:
            return Path(histfile).expanduser()
        if self._shell == "bash":
            return self._home / ".bash_history"
        if self._shell == "zsh":
            return self._home / ".zsh_history"
        if self._shell == "fish":
            return self._home / ".local" / "share" / "fish" / "fish_history"
        return None

    def format_entry(self, command: str) -> str:
        now = int(time.time())
        if self._shell == "zsh":
            return f": {now}:0;{command}\n"
        if self._shell == "fish":
            return f"- cmd: {command}\n  when: {now}\n"
        return f"{command}\n"

    @override
    def append(self, command: str) -> None:
        path = self.history_path()
        if path is None:
            self._logger.debug(f"No history file known for shell {self._shell}")
            return
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(self.format_entry(command))
        except OSError as e:
            self._logger.warning(f"Could not append to shell history {path}: {e}")
