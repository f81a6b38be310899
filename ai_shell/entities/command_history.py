"""
Bounded history of recently executed commands, rendered as model context.
"""

from collections import deque
from typing import Deque

from ai_shell.entities.command_result import CommandResult

DEFAULT_HISTORY_SIZE = 5
MAX_OUTPUT_LINES = 15
EMPTY_HISTORY_TEXT = "No command history available."


def trim_output(output: str, max_lines: int = MAX_OUTPUT_LINES) -> str:
    """
    Bound a command output to roughly ``max_lines`` lines.

    Long outputs keep their leading and trailing lines around a marker telling
    how many lines were left out.

    Args:
        output: The captured output
        max_lines: Line budget

    Returns:
        The output, shortened when over budget
    """
    lines = output.split("\n")
    if len(lines) <= max_lines:
        return output

    half = max_lines // 2
    omitted = len(lines) - 2 * half
    return "\n".join(
        [*lines[:half], f"... ({omitted} more lines) ...", *lines[len(lines) - half :]]
    )


class CommandHistoryBuffer:
    """
    Most-recent-first ring of command results.

    The buffer never holds more than ``max_size`` entries; recording into a full
    buffer evicts the oldest entry.
    """

    def __init__(self, max_size: int = DEFAULT_HISTORY_SIZE):
        if max_size < 1:
            raise ValueError("History size must be at least 1")
        self.max_size = max_size
        self._entries: Deque[CommandResult] = deque(maxlen=max_size)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, result: CommandResult) -> None:
        """Insert a result at the front, evicting the oldest when full."""
        self._entries.appendleft(result)

    def snapshot(self) -> tuple[CommandResult, ...]:
        """Return the current entries, most recent first."""
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def format(self) -> str:
        """
        Render the history as a context block for the model.

        Entries are numbered so that the most recent one carries the highest
        number.

        Returns:
            Formatted command history string
        """
        entries = self.snapshot()
        if not entries:
            return EMPTY_HISTORY_TEXT
        total = len(entries)
        return "\n".join(
            self._format_entry(result, total - index)
            for index, result in enumerate(entries)
        )

    @staticmethod
    def _format_entry(result: CommandResult, number: int) -> str:
        status = "✓" if result.succeeded else "✗"
        when = result.timestamp.strftime("%H:%M:%S")

        text = f"## Command {number} [{when}] {status}\n"
        text += f"```bash\n$ {result.command}\n```\n"
        text += f"Exit code: {result.exit_code}\n"
        if result.stdout and result.stdout.strip():
            text += f"\nOutput:\n```\n{trim_output(result.stdout)}\n```\n"
        if result.stderr and result.stderr.strip():
            text += f"\nError:\n```\n{trim_output(result.stderr)}\n```\n"
        return text
