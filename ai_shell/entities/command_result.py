"""
Command result domain entity.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CommandResult:
    """
    One executed shell command.

    Created right after the command finishes and never modified afterwards.
    """

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
