from __future__ import annotations

import argparse
import logging
import random
import sys
from typing import Optional

from prompt_toolkit import prompt as pt_prompt
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich import box

from ai_shell.container import DependencyContainer, container
from ai_shell.entities.command_result import CommandResult
from ai_shell.exceptions import BaseAppError, CommandExecutionError

PROJECT_NAME = "ai-shell"

EXAMPLES = [
    "delete all log files",
    "list js files",
    "fetch me a random joke",
    "list all commits",
]

CHAT_COMMAND = "chat"
CHAT_EXIT_WORDS = ("exit", "quit")

logger = logging.getLogger("ai_shell.cli")


def _write(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


def _echo_output(text: str, stream) -> None:
    if not text:
        return
    stream.write(text)
    if not text.endswith("\n"):
        stream.write("\n")
    stream.flush()


class Session:
    """One interactive shell-assistant session."""

    def __init__(
        self,
        deps: DependencyContainer,
        console: Console,
        silent: bool = False,
    ) -> None:
        self._deps = deps
        self._console = console
        self._silent = silent
        self._assistant = deps.get_shell_assistant_use_case()
        self._runner = deps.get_run_command_use_case()

    # -------- prompts --------

    def _ask(self, message: str, placeholder: Optional[str] = None) -> str:
        while True:
            try:
                hint = f" [dim]({placeholder})[/dim]" if placeholder else ""
                value = Prompt.ask(f"[cyan]{message}[/cyan]{hint}", console=self._console)
            except (KeyboardInterrupt, EOFError):
                self._console.print("\n[dim]Goodbye![/dim]")
                raise SystemExit(0)
            if value and value.strip():
                return value.strip()
            self._console.print("[yellow]Please enter a prompt.[/yellow]")

    def _stream_section(self, title: str, read) -> str:
        self._console.print(f"[bold]{title}[/bold]:")
        self._console.print()
        text = read(_write)
        self._console.print()
        self._console.print()
        self._console.print("[dim]•[/dim]")
        return text

    # -------- flows --------

    def turn(self, use_prompt: Optional[str] = None) -> None:
        self._console.print()
        self._console.print(f"[cyan]{PROJECT_NAME}[/cyan]")
        the_prompt = use_prompt or self._ask(
            "What would you like me to do?", f"e.g. {random.choice(EXAMPLES)}"
        )
        with self._console.status("Loading..."):
            readers = self._assistant.get_script_and_info(the_prompt)
        self._console.print("[dim]Press q or Esc to stop streaming.[/dim]")
        script = self._stream_section("Your script", readers.read_script)

        if not self._silent:
            info = readers.read_info(_write)
            if not info:
                self._explain(script)

        self._run_or_revise(script, the_prompt)

    def _explain(self, script: str) -> None:
        with self._console.status("Getting explanation..."):
            read_explanation = self._assistant.get_explanation(script)
        self._stream_section("Explanation", read_explanation)

    def _run_or_revise(self, script: str, original_prompt: str) -> None:
        empty = script.strip() == ""
        options = {
            "r": "Revise - give feedback via prompt and get a new result",
            "c": "Copy - copy the generated script to your clipboard",
            "n": "Cancel - exit the program",
        }
        if not empty:
            options = {
                "y": "Yes - lets go!",
                "e": "Edit - make some adjustments before running",
                **options,
            }
        for key, label in options.items():
            self._console.print(f"  [cyan]{key}[/cyan]  {label}")
        try:
            answer = Prompt.ask(
                "Revise this script?" if empty else "Run this script?",
                choices=list(options),
                default="r" if empty else "y",
                console=self._console,
            )
        except (KeyboardInterrupt, EOFError):
            answer = "n"

        if answer == "y":
            self._run_script(script, original_prompt)
        elif answer == "e":
            try:
                edited = pt_prompt("you can edit script here: ", default=script)
            except (KeyboardInterrupt, EOFError):
                return
            if edited.strip():
                self._run_script(edited.strip(), original_prompt)
        elif answer == "r":
            self._revise(script, original_prompt)
        elif answer == "c":
            self._deps.get_clipboard().copy(script)
            self._console.print("[green]Copied to clipboard![/green]")
        else:
            self._console.print("[dim]Goodbye![/dim]")
            raise SystemExit(0)

    def _revise(self, current_script: str, original_prompt: str) -> None:
        revision = self._ask(
            "What would you like me to change in this script?",
            "e.g. change the folder name",
        )
        with self._console.status("Loading..."):
            read_script = self._assistant.get_revision(revision, current_script)
        script = self._stream_section("Your new script", read_script)
        if not self._silent:
            self._explain(script)
        self._run_or_revise(script, original_prompt)

    def _run_script(self, script: str, original_prompt: str) -> int:
        self._console.print(f"[green]Running[/green]: {script}")
        self._console.print()
        try:
            result = self._runner.execute(script)
        except CommandExecutionError as e:
            self._console.print(f"\n[red]✖[/red] {e}")
            return 1

        _echo_output(result.stdout, sys.stdout)
        _echo_output(result.stderr, sys.stderr)

        if not result.succeeded:
            self._analyze_failure(result, original_prompt)
        return result.exit_code

    def _analyze_failure(self, result: CommandResult, original_prompt: str) -> None:
        self._console.print()
        self._console.print(
            f"[yellow]Command failed with exit code {result.exit_code}[/yellow]"
        )
        try:
            with self._console.status("Analyzing error... (Ctrl+C to stop)"):
                read_analysis = self._runner.analyze(result, original_prompt)
            self._console.print("[yellow]Error analysis:[/yellow]")
            self._console.print()
            read_analysis(_write)
            self._console.print()
            self._console.print()
        except BaseAppError as e:
            self._console.print("[red]Error analysis failed[/red]")
            self._console.print(f"\n[red]✖[/red] {e}")


class ChatSession:
    """Free-form conversation with the model, remembered for the whole session."""

    def __init__(self, deps: DependencyContainer, console: Console) -> None:
        self._console = console
        self._assistant = deps.get_shell_assistant_use_case()
        self.conversation: list[dict[str, str]] = []

    def turn(self) -> bool:
        """Ask for one message and stream the reply. Returns False to leave."""
        try:
            message = Prompt.ask("[cyan]You[/cyan]", console=self._console)
        except (KeyboardInterrupt, EOFError):
            return False
        message = (message or "").strip()
        if not message:
            return True
        if message.lower() in CHAT_EXIT_WORDS:
            return False

        # Only remembered once the reply has arrived
        pending = [*self.conversation, {"role": "user", "content": message}]
        with self._console.status("Thinking..."):
            read_reply = self._assistant.get_chat_reply(pending)
        self._console.print("[bold]AI Shell[/bold]:")
        reply = read_reply(_write)
        self._console.print()
        self._console.print()
        self.conversation = [*pending, {"role": "assistant", "content": reply}]
        return True


def run_chat(deps: DependencyContainer, console: Console) -> int:
    chat = ChatSession(deps, console)
    console.print(
        "[dim]Starting new conversation. Type exit or press Ctrl+C to leave.[/dim]"
    )
    while True:
        try:
            if not chat.turn():
                console.print("[dim]Goodbye![/dim]")
                return 0
        except KeyboardInterrupt:
            console.print("\n[yellow]Cancelled.[/yellow]")
        except BaseAppError as e:
            logger.debug("Chat request failed", exc_info=True)
            console.print(f"\n[red]✖[/red] {e}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog=PROJECT_NAME,
        description="A CLI that converts natural language to shell commands.",
    )
    parser.add_argument(
        "words", nargs="*", help=f"Prompt to run, or '{CHAT_COMMAND}' to start a chat"
    )
    parser.add_argument("-p", "--prompt", default=None, help="Prompt to run")
    parser.add_argument(
        "-s",
        "--silent",
        action="store_true",
        help="Less verbose, skip printing the command explanation",
    )
    args = parser.parse_args(argv)

    console = Console(highlight=False, soft_wrap=True)
    try:
        settings = container.get_settings()
    except BaseAppError as e:
        console.print(f"[red]✖[/red] {e}")
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    console.print(
        Panel(
            "Turn natural language into shell commands.\n"
            "q/Esc stops a streamed answer. Ctrl+C stops an error analysis.",
            title=PROJECT_NAME,
            border_style="cyan",
            box=box.ROUNDED,
        )
    )
    if args.words == [CHAT_COMMAND]:
        try:
            return run_chat(container, console)
        finally:
            container.reset()

    session = Session(container, console, silent=args.silent or settings.silent_mode)
    prompt_text = " ".join(args.words).strip() or args.prompt
    try:
        while True:
            try:
                session.turn(prompt_text)
            except KeyboardInterrupt:
                console.print("\n[yellow]Cancelled.[/yellow]")
            except Exception as e:
                # Keep the session alive whatever happened to this request
                logger.debug("Request failed", exc_info=True)
                console.print(f"\n[red]✖[/red] {e}")
            prompt_text = None
    except SystemExit as e:
        return int(e.code or 0)
    finally:
        container.reset()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
