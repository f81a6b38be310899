"""
Tests for the local shell adapters.
"""

import os
import sys
from unittest.mock import patch

import pytest

from ai_shell.adapters.shell.local_shell_adapter import (
    LocalCommandExecutor,
    ShellHistoryFile,
    detect_shell,
)
from ai_shell.exceptions import CommandExecutionError

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX shell required")


class TestLocalCommandExecutor:
    """Test cases for the LocalCommandExecutor."""

    @posix_only
    def test_execute_captures_output(self, mock_logger, monkeypatch):
        """Test that stdout, stderr and the exit code are captured."""
        monkeypatch.setenv("SHELL", "/bin/sh")
        executor = LocalCommandExecutor(logger=mock_logger)

        output = executor.execute("echo out; echo err >&2; exit 3")

        assert output.exit_code == 3
        assert output.stdout == "out\n"
        assert output.stderr == "err\n"

    @posix_only
    def test_execute_success(self, mock_logger, monkeypatch):
        """Test a successful command."""
        monkeypatch.setenv("SHELL", "/bin/sh")

        output = LocalCommandExecutor(logger=mock_logger).execute("true")

        assert output == (0, "", "")

    @posix_only
    def test_execute_launch_failure(self, mock_logger, monkeypatch):
        """Test that a missing shell raises CommandExecutionError."""
        monkeypatch.setenv("SHELL", "/nonexistent/shell")
        executor = LocalCommandExecutor(logger=mock_logger)

        with pytest.raises(CommandExecutionError):
            executor.execute("true")

        mock_logger.error.assert_called_once()

    def test_describe_environment(self, monkeypatch):
        """Test the shell and operating system description."""
        monkeypatch.setenv("SHELL", "/usr/bin/zsh")

        shell, operating_system = LocalCommandExecutor().describe_environment()

        assert shell == "zsh"
        assert operating_system


class TestDetectShell:
    """Test cases for shell detection."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SHELL", "/usr/local/bin/fish")
        assert detect_shell() == "fish"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX fallback")
    def test_fallback(self, monkeypatch):
        monkeypatch.delenv("SHELL", raising=False)
        assert detect_shell() == "sh"


class TestShellHistoryFile:
    """Test cases for the ShellHistoryFile."""

    def test_bash_history(self, tmp_path, monkeypatch):
        """Test appending to the bash history."""
        monkeypatch.delenv("HISTFILE", raising=False)
        history = ShellHistoryFile(shell="bash", home=tmp_path)

        history.append("ls -la")
        history.append("pwd")

        assert (tmp_path / ".bash_history").read_text() == "ls -la\npwd\n"

    def test_zsh_extended_format(self, tmp_path, monkeypatch):
        """Test that zsh entries use the extended history format."""
        monkeypatch.delenv("HISTFILE", raising=False)
        history = ShellHistoryFile(shell="zsh", home=tmp_path)

        with patch("ai_shell.adapters.shell.local_shell_adapter.time.time", return_value=1700000000):
            history.append("git status")

        assert (tmp_path / ".zsh_history").read_text() == ": 1700000000:0;git status\n"

    def test_fish_format(self, tmp_path):
        """Test the fish history entry format."""
        history = ShellHistoryFile(shell="fish", home=tmp_path)

        with patch("ai_shell.adapters.shell.local_shell_adapter.time.time", return_value=42):
            entry = history.format_entry("echo hi")

        assert entry == "- cmd: echo hi\n  when: 42\n"
        assert history.history_path() == (
            tmp_path / ".local" / "share" / "fish" / "fish_history"
        )

    def test_histfile_override(self, tmp_path, monkeypatch):
        """Test that HISTFILE is honoured for bash and zsh."""
        target = tmp_path / "custom_history"
        monkeypatch.setenv("HISTFILE", str(target))

        ShellHistoryFile(shell="bash", home=tmp_path).append("whoami")

        assert target.read_text() == "whoami\n"

    def test_unknown_shell_is_skipped(self, tmp_path, mock_logger):
        """Test that shells without a known history file are ignored."""
        history = ShellHistoryFile(shell="tcsh", home=tmp_path, logger=mock_logger)

        history.append("ls")

        assert history.history_path() is None
        assert list(tmp_path.iterdir()) == []

    def test_write_failure_only_warns(self, tmp_path, mock_logger, monkeypatch):
        """Test that an unwritable history file does not raise."""
        monkeypatch.delenv("HISTFILE", raising=False)
        history = ShellHistoryFile(
            shell="bash", home=tmp_path / "missing", logger=mock_logger
        )

        history.append("ls")

        mock_logger.warning.assert_called_once()
