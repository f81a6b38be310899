"""
Configuration settings for the application.
"""

import os

from dotenv import load_dotenv

from ai_shell.exceptions import ConfigurationError

# Load environment variables from .env file
_ = load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.openai_api_key: str = self._get_required_env(
            "OPENAI_API_KEY", "OPENAI_KEY"
        )
        self.openai_model: str = self._get_env(
            ("OPENAI_MODEL", "MODEL"), "gpt-4o-mini"
        )
        self.openai_api_endpoint: str = self._get_env(
            ("OPENAI_API_ENDPOINT", "OPENAI_API_BASE"), "https://api.openai.com/v1"
        )
        self.silent_mode: bool = self._get_bool("AI_SHELL_SILENT_MODE", False)
        self.language: str = self._get_env(("AI_SHELL_LANGUAGE",), "English")
        self.log_level: str = self._get_env(("AI_SHELL_LOG_LEVEL",), "WARNING").upper()
        self.history_size: int = self._get_int("AI_SHELL_HISTORY_SIZE", 5)
        self.worker_timeout: float = self._get_float("AI_SHELL_WORKER_TIMEOUT", 10.0)

    def _get_required_env(self, *keys: str) -> str:
        """Get a required environment variable, raise error if missing."""
        for key in keys:
            value = os.getenv(key)
            if value:
                return value
        raise ConfigurationError(
            f"Required environment variable {keys[0]} is not set"
        )

    def _get_env(self, keys: tuple[str, ...], default: str) -> str:
        """Get the first set environment variable with a default value."""
        for key in keys:
            value = os.getenv(key)
            if value:
                return value
        return default

    def _get_bool(self, key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None or not value.strip():
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    def _get_int(self, key: str, default: int) -> int:
        value = os.getenv(key)
        if not value:
            return default
        try:
            parsed = int(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}")
        if parsed < 1:
            raise ConfigurationError(f"{key} must be at least 1, got {parsed}")
        return parsed

    def _get_float(self, key: str, default: float) -> float:
        value = os.getenv(key)
        if not value:
            return default
        try:
            parsed = float(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be a number, got {value!r}")
        if parsed <= 0:
            raise ConfigurationError(f"{key} must be positive, got {parsed}")
        return parsed
