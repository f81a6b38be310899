"""
Use case for running a generated command and keeping track of its outcome.
"""

import logging
from typing import Callable, Optional

from ai_shell.entities.command_history import CommandHistoryBuffer
from ai_shell.entities.command_result import CommandResult
from ai_shell.exceptions import CommandExecutionError
from ai_shell.ports.shell.shell_port import CommandExecutorPort, ShellHistoryPort
from ai_shell.use_cases.llm.shell_assistant import ShellAssistantUseCase
from ai_shell.use_cases.llm.stream_decoder import Writer


class RunCommandUseCase:
    """Run a command, record it in the history and diagnose failures."""

    def __init__(
        self,
        executor: CommandExecutorPort,
        history: CommandHistoryBuffer,
        shell_history: ShellHistoryPort,
        assistant: ShellAssistantUseCase,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the use case.

        Args:
            executor: Port running shell commands
            history: Buffer receiving every command result
            shell_history: The user's persistent shell history
            assistant: Used to analyze failed commands
            logger: Logger instance to use for logging
        """
        self._executor = executor
        self._history = history
        self._shell_history = shell_history
        self._assistant = assistant
        self._logger = logger or logging.getLogger(__name__)

    def execute(self, command: str) -> CommandResult:
        """
        Run ``command`` and record the result.

        Args:
            command: The command line to run

        Returns:
            The command result, whatever its exit code

        Raises:
            CommandExecutionError: If the command cannot be launched
        """
        try:
            output = self._executor.execute(command)
        except CommandExecutionError:
            raise
        except Exception as e:
            self._logger.error(f"Error running command: {e}")
            raise CommandExecutionError(f"Failed to run '{command}': {str(e)}")

        result = CommandResult(
            command=command,
            exit_code=output.exit_code,
            stdout=output.stdout,
            stderr=output.stderr,
        )
        self._history.record(result)
        try:
            self._shell_history.append(command)
        except Exception as e:
            self._logger.warning(f"Could not record command in shell history: {e}")
        return result

    def analyze(
        self, result: CommandResult, original_prompt: Optional[str] = None
    ) -> Callable[[Writer], str]:
        """
        Request the model's diagnosis of a failed command.

        Returns:
            A ``reader(writer)`` callable streaming the analysis; it returns the
            analysis text, possibly partial when stopped with Ctrl-C

        Raises:
            LLMError: If the analysis request fails
        """
        self._logger.info(
            f"Command '{result.command}' failed with exit code {result.exit_code}"
        )
        return self._assistant.get_command_analysis(result, original_prompt)
