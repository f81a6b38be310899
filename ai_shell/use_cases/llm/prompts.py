"""
Prompt builders for script generation, revision, explanation and failure analysis.
"""

from textwrap import dedent
from typing import Optional

from ai_shell.entities.command_result import CommandResult

EXPLAIN_SCRIPT = (
    "Please provide a clear, concise description of the script, using minimal "
    "words. Outline the steps in a list format."
)


def generation_details(operating_system: str) -> str:
    return (
        "Only reply with the single line command surrounded by three backticks. "
        "It must be able to be directly run in the target shell. Do not include "
        "any other text.\n\n"
        f"Make sure the command runs on {operating_system} operating system."
    )


def _join(*sections: str) -> str:
    return "\n\n".join(s.strip() for s in sections if s and s.strip())


def full_prompt(
    prompt: str,
    shell: str,
    operating_system: str,
    command_history: Optional[str] = None,
) -> str:
    """
    Build the script generation prompt.

    Args:
        prompt: What the user asked for
        shell: Description of the target shell
        operating_system: Name of the operating system
        command_history: Formatted recent command history, if any

    Returns:
        The prompt text
    """
    history = ""
    if command_history:
        history = (
            f"# Recent Command History\n{command_history}\n\n"
            "Consider the above command history when generating a command."
        )
    return _join(
        "Create a single line command that one can enter in a terminal and run, "
        "based on what is specified in the prompt.",
        f"The target shell is {shell}",
        generation_details(operating_system),
        history,
        f"The prompt is: {prompt}",
    )


def revision_prompt(prompt: str, code: str, operating_system: str) -> str:
    return _join(
        "Update the following script based on what is asked in the following prompt.",
        f"The script: {code}",
        f"The prompt: {prompt}",
        generation_details(operating_system),
    )


def explanation_prompt(script: str, language: str) -> str:
    return _join(
        f"{EXPLAIN_SCRIPT} Please reply in {language}",
        f"The script: {script}",
    )


def command_analysis_prompt(
    result: CommandResult,
    command_history: str,
    language: str,
    original_prompt: Optional[str] = None,
) -> str:
    """
    Build the prompt asking the model to diagnose a failed command.

    Args:
        result: The failed command
        command_history: Formatted recent command history
        language: Reply language
        original_prompt: The request that produced the command, if known

    Returns:
        The prompt text
    """
    intent = ""
    if original_prompt:
        intent = f'# Original Intent\nMy original request was: "{original_prompt}"'

    failed = f"# Current Failed Command\nCommand: {result.command}\nExit code: {result.exit_code}"
    if result.stdout:
        failed += f"\n\nSTDOUT:\n{result.stdout}"
    if result.stderr:
        failed += f"\n\nSTDERR:\n{result.stderr}"

    based_on = "original intent, " if original_prompt else ""
    instructions = dedent(
        f"""\
        Based on my {based_on}recent command history and the current failed command, please:

        1. Analyze what went wrong with the current command
        2. Consider the context of my previous commands to understand what I'm trying to accomplish
        3. Provide specific suggestions to fix the issue
        4. If appropriate, suggest an improved command that would work better
        5. If there are multiple possible solutions, explain the trade-offs

        Make your analysis contextual - use the information from my command history to provide more relevant suggestions.
        If you see a pattern of errors or attempts in my command history, address those specifically."""
    )
    return _join(
        "I ran a shell command that failed. Please analyze the error and provide "
        "suggestions to fix it.",
        intent,
        failed,
        f"# Recent Command History\n{command_history}",
        instructions,
        f"Please reply in {language}",
    )
