"""
Tests for the prompt builders.
"""

from ai_shell.entities.command_result import CommandResult
from ai_shell.use_cases.llm import prompts


class TestPrompts:
    """Test cases for prompt construction."""

    def test_full_prompt(self):
        """Test the generation prompt carries shell, OS and request."""
        text = prompts.full_prompt("list js files", "zsh", "macOS")

        assert "The target shell is zsh" in text
        assert "runs on macOS operating system" in text
        assert text.endswith("The prompt is: list js files")
        assert "Recent Command History" not in text

    def test_full_prompt_with_history(self):
        """Test that command history is embedded when given."""
        text = prompts.full_prompt(
            "undo that", "bash", "Linux", "## Command 1 [10:00:00] ✓"
        )

        assert "# Recent Command History\n## Command 1 [10:00:00] ✓" in text
        assert text.index("Recent Command History") < text.index("The prompt is:")

    def test_revision_prompt(self):
        """Test the revision prompt."""
        text = prompts.revision_prompt("use /var/log", "rm *.log", "Linux")

        assert "The script: rm *.log" in text
        assert "The prompt: use /var/log" in text
        assert "three backticks" in text

    def test_explanation_prompt(self):
        """Test the explanation prompt honours the reply language."""
        text = prompts.explanation_prompt("ls -la", "French")

        assert text.startswith(prompts.EXPLAIN_SCRIPT)
        assert "Please reply in French" in text
        assert "The script: ls -la" in text

    def test_command_analysis_prompt(self):
        """Test the failure analysis prompt."""
        result = CommandResult(
            command="cat missing.txt",
            exit_code=1,
            stderr="cat: missing.txt: No such file or directory",
        )

        text = prompts.command_analysis_prompt(
            result, "No command history available.", "English", "show the notes"
        )

        assert 'My original request was: "show the notes"' in text
        assert "Command: cat missing.txt\nExit code: 1" in text
        assert "STDERR:\ncat: missing.txt" in text
        assert "STDOUT:" not in text
        assert "Based on my original intent, recent command history" in text
        assert text.endswith("Please reply in English")

    def test_command_analysis_prompt_without_intent(self):
        """Test the analysis prompt when the original request is unknown."""
        result = CommandResult(command="false", exit_code=1)

        text = prompts.command_analysis_prompt(result, "history", "English")

        assert "Original Intent" not in text
        assert "Based on my recent command history" in text
