"""
Dependency injection container for managing application dependencies.
"""

import atexit
import logging
from typing import Sequence

from ai_shell.adapters.llm.forked_completion_adapter import (
    ForkedCompletionAdapter,
    WorkerHandle,
)
from ai_shell.adapters.shell.clipboard_adapter import PyperclipClipboard
from ai_shell.adapters.shell.local_shell_adapter import (
    LocalCommandExecutor,
    ShellHistoryFile,
)
from ai_shell.config.settings import Settings
from ai_shell.entities.command_history import CommandHistoryBuffer
from ai_shell.entities.stream import ExclusionPattern
from ai_shell.ports.llm.completion_port import CompletionPort
from ai_shell.ports.shell.shell_port import (
    ClipboardPort,
    CommandExecutorPort,
    ShellHistoryPort,
)
from ai_shell.use_cases.llm.shell_assistant import ShellAssistantUseCase
from ai_shell.use_cases.llm.stream_decoder import StreamDecoder
from ai_shell.use_cases.llm.stream_reader import StreamReader
from ai_shell.use_cases.shell.run_command import RunCommandUseCase


class DependencyContainer:
    """
    Container for managing application dependencies using dependency injection.
    """

    def __init__(self):
        self._instances = {}
        self._logger = logging.getLogger("ai_shell")

    def get_settings(self) -> Settings:
        """
        Get application settings.

        Raises:
            ConfigurationError: If a required variable is missing
        """
        if "settings" not in self._instances:
            self._instances["settings"] = Settings()
        return self._instances["settings"]

    def get_command_history(self) -> CommandHistoryBuffer:
        if "command_history" not in self._instances:
            self._instances["command_history"] = CommandHistoryBuffer(
                self.get_settings().history_size
            )
        return self._instances["command_history"]

    def get_worker_handle(self) -> WorkerHandle:
        """
        Get the generation worker handle. The worker itself starts on first use
        and is killed when the interpreter exits.
        """
        if "worker_handle" not in self._instances:
            settings = self.get_settings()
            handle = WorkerHandle(
                startup_timeout=settings.worker_timeout,
                env={"AI_SHELL_LOG_LEVEL": settings.log_level},
                logger=self._logger,
            )
            atexit.register(handle.shutdown)
            self._instances["worker_handle"] = handle
        return self._instances["worker_handle"]

    def get_completion_adapter(self) -> CompletionPort:
        if "completion_adapter" not in self._instances:
            self._instances["completion_adapter"] = ForkedCompletionAdapter(
                self.get_worker_handle(), logger=self._logger
            )
        return self._instances["completion_adapter"]

    def get_command_executor(self) -> CommandExecutorPort:
        if "command_executor" not in self._instances:
            self._instances["command_executor"] = LocalCommandExecutor(self._logger)
        return self._instances["command_executor"]

    def get_shell_history(self) -> ShellHistoryPort:
        if "shell_history" not in self._instances:
            self._instances["shell_history"] = ShellHistoryFile(logger=self._logger)
        return self._instances["shell_history"]

    def get_clipboard(self) -> ClipboardPort:
        if "clipboard" not in self._instances:
            self._instances["clipboard"] = PyperclipClipboard(self._logger)
        return self._instances["clipboard"]

    def make_stream_reader(self, exclusions: Sequence[ExclusionPattern]) -> StreamReader:
        """Build a reader for one request type. Readers are not cached."""
        return StreamReader(StreamDecoder(exclusions, self._logger), logger=self._logger)

    def get_shell_assistant_use_case(self) -> ShellAssistantUseCase:
        """
        Get shell assistant use case with injected dependencies.

        Returns:
            Configured ShellAssistantUseCase
        """
        if "shell_assistant_use_case" not in self._instances:
            shell, operating_system = self.get_command_executor().describe_environment()
            self._instances["shell_assistant_use_case"] = ShellAssistantUseCase(
                self.get_completion_adapter(),
                self.get_command_history(),
                self.get_settings(),
                shell=shell,
                operating_system=operating_system,
                reader_factory=self.make_stream_reader,
                logger=self._logger,
            )
        return self._instances["shell_assistant_use_case"]

    def get_run_command_use_case(self) -> RunCommandUseCase:
        """
        Get run command use case with injected dependencies.

        Returns:
            Configured RunCommandUseCase
        """
        if "run_command_use_case" not in self._instances:
            self._instances["run_command_use_case"] = RunCommandUseCase(
                self.get_command_executor(),
                self.get_command_history(),
                self.get_shell_history(),
                self.get_shell_assistant_use_case(),
                logger=self._logger,
            )
        return self._instances["run_command_use_case"]

    def reset(self):
        """Shut the worker down and drop all instances (useful for testing)."""
        handle = self._instances.get("worker_handle")
        if handle is not None:
            handle.shutdown()
        self._instances.clear()


# Global container instance
container = DependencyContainer()
