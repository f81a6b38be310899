"""
Pytest configuration and shared fixtures.
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from ai_shell.container import DependencyContainer
from ai_shell.entities.command_history import CommandHistoryBuffer


def make_frame(content: str) -> str:
    """Build one server-sent event carrying a delta content fragment."""
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload)}\n\n"


@pytest.fixture
def mock_logger():
    """
    Create a mock logger for testing.

    Returns:
        Mock logger instance
    """
    return MagicMock()


@pytest.fixture
def frame():
    """Expose the frame builder to tests."""
    return make_frame


@pytest.fixture
def history():
    """An empty command history with the default capacity."""
    return CommandHistoryBuffer()


@pytest.fixture
def generation_settings():
    """Settings stand-in for use cases that only need generation parameters."""
    return SimpleNamespace(
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
        openai_api_endpoint="https://api.example.com/v1",
        language="English",
    )


@pytest.fixture
def dependency_container(mock_logger, monkeypatch):
    """
    Create a dependency container with mocked dependencies for testing.

    Returns:
        DependencyContainer instance with mocked logger
    """
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    container = DependencyContainer()
    # Replace the logger with our mock
    container._logger = mock_logger
    yield container
    container.reset()
