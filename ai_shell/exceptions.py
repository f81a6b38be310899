"""
Custom exceptions for the application.
"""

from typing import Optional


class BaseAppError(Exception):
    """Base exception class for application errors."""

    pass


class ConfigurationError(BaseAppError):
    """Exception raised for configuration errors."""

    pass


class LLMError(BaseAppError):
    """Exception raised for LLM-related errors."""

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        code: Optional[str] = None,
        remote_stack: Optional[str] = None,
    ):
        super().__init__(message)
        self.name = name or type(self).__name__
        self.code = code
        self.remote_stack = remote_stack


class KnownError(LLMError):
    """A classified, user-facing error with a predetermined remediation message."""

    pass


class WorkerError(LLMError):
    """Exception raised when the generation worker misbehaves."""

    pass


class WorkerStartupError(WorkerError):
    """Exception raised when the generation worker does not become ready."""

    pass


class WorkerExitedError(WorkerError):
    """Exception raised when the generation worker exits mid-request."""

    def __init__(self, exit_code: Optional[int]):
        super().__init__(f"AI process exited with code {exit_code}")
        self.exit_code = exit_code


class CommandExecutionError(BaseAppError):
    """Exception raised when a shell command cannot be launched."""

    pass
