"""
Ports for the shell-side collaborators: command execution, history and clipboard.
"""

from abc import ABC, abstractmethod
from typing import NamedTuple


class ExecutionOutput(NamedTuple):
    exit_code: int
    stdout: str
    stderr: str


class CommandExecutorPort(ABC):
    """Port interface for running shell commands."""

    @abstractmethod
    def execute(self, command: str) -> ExecutionOutput:
        """
        Run a command in the user's shell and capture its output.

        A non-zero exit code is a normal result, not an error.

        Raises:
            CommandExecutionError: If the command cannot be launched
        """
        pass

    @abstractmethod
    def describe_environment(self) -> tuple[str, str]:
        """Return a (shell, operating system) description pair."""
        pass


class ShellHistoryPort(ABC):
    """Port interface for the user's persistent shell history."""

    @abstractmethod
    def append(self, command: str) -> None:
        pass


class ClipboardPort(ABC):
    """Port interface for the system clipboard."""

    @abstractmethod
    def copy(self, text: str) -> None:
        pass
