"""
Use case turning natural-language requests into streamed shell commands.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from ai_shell.entities.command_history import CommandHistoryBuffer
from ai_shell.entities.command_result import CommandResult
from ai_shell.entities.stream import SHELL_CODE_EXCLUSIONS, ExclusionPattern
from ai_shell.exceptions import LLMError
from ai_shell.ports.llm.completion_port import (
    ChunkStream,
    CompletionPort,
    GenerationRequest,
    Prompt,
)
from ai_shell.use_cases.llm import prompts
from ai_shell.use_cases.llm.stream_decoder import StreamDecoder, Writer
from ai_shell.use_cases.llm.stream_reader import StreamReader, StreamReadFn

ReaderFactory = Callable[[Sequence[ExclusionPattern]], StreamReader]


class GenerationSettings(Protocol):
    openai_api_key: str
    openai_model: str
    openai_api_endpoint: str
    language: str


@dataclass(frozen=True)
class ScriptReaders:
    """Two readers over one stream: the script, then any trailing info."""

    read_script: StreamReadFn
    read_info: StreamReadFn


class ShellAssistantUseCase:
    """Use case for generating, revising, explaining and diagnosing commands."""

    def __init__(
        self,
        completion: CompletionPort,
        history: CommandHistoryBuffer,
        settings: GenerationSettings,
        shell: str,
        operating_system: str,
        reader_factory: Optional[ReaderFactory] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the use case.

        Args:
            completion: Port issuing streamed completions
            history: Recent command history used as context
            settings: Credential, model, endpoint and reply language
            shell: Description of the target shell
            operating_system: Name of the operating system
            reader_factory: Builds a reader for a set of exclusion patterns
            logger: Logger instance to use for logging
        """
        self._completion = completion
        self._history = history
        self._settings = settings
        self._shell = shell
        self._operating_system = operating_system
        self._logger = logger or logging.getLogger(__name__)
        self._reader_factory = reader_factory or self._default_reader

    def _default_reader(self, exclusions: Sequence[ExclusionPattern]) -> StreamReader:
        return StreamReader(StreamDecoder(exclusions, self._logger), logger=self._logger)

    def _stream(self, prompt: Prompt) -> ChunkStream:
        request = GenerationRequest(
            prompt=prompt,
            key=self._settings.openai_api_key,
            model=self._settings.openai_model,
            api_endpoint=self._settings.openai_api_endpoint,
            number=1,
        )
        try:
            return self._completion.stream_completion(request)
        except LLMError:
            raise
        except Exception as e:
            self._logger.error(f"Error starting completion: {e}")
            raise LLMError(f"Failed to start completion: {str(e)}")

    def get_script_and_info(self, prompt: str) -> ScriptReaders:
        """
        Ask for a single-line command answering ``prompt``.

        Args:
            prompt: What the user wants to do

        Returns:
            Readers for the script and for any text following it
        """
        self._logger.info(f"Generating script for prompt: '{prompt}'")
        chunks = self._stream(
            prompts.full_prompt(
                prompt, self._shell, self._operating_system, self._history.format()
            )
        )
        reader = self._reader_factory(SHELL_CODE_EXCLUSIONS)
        return ScriptReaders(
            read_script=reader.bind(chunks), read_info=reader.bind(chunks)
        )

    def get_explanation(self, script: str) -> StreamReadFn:
        self._logger.info("Requesting script explanation")
        chunks = self._stream(
            prompts.explanation_prompt(script, self._settings.language)
        )
        return self._reader_factory(()).bind(chunks)

    def get_revision(self, prompt: str, code: str) -> StreamReadFn:
        self._logger.info(f"Revising script with prompt: '{prompt}'")
        chunks = self._stream(
            prompts.revision_prompt(prompt, code, self._operating_system)
        )
        return self._reader_factory(SHELL_CODE_EXCLUSIONS).bind(chunks)

    def get_chat_reply(self, conversation: Sequence[dict[str, str]]) -> StreamReadFn:
        """
        Continue a free-form conversation.

        Args:
            conversation: Role-tagged messages, oldest first, ending with the
                user's latest message

        Returns:
            A reader streaming the assistant's reply unfiltered
        """
        if not conversation:
            raise LLMError("Conversation is empty")
        self._logger.info(f"Chatting with {len(conversation)} messages")
        chunks = self._stream([dict(message) for message in conversation])
        return self._reader_factory(()).bind(chunks)

    def get_command_analysis(
        self, result: CommandResult, original_prompt: Optional[str] = None
    ) -> Callable[[Writer], str]:
        """
        Ask the model to diagnose a failed command.

        The returned reader always runs in analysis mode, where Ctrl-C ends the
        answer early and keeps what was received.

        Args:
            result: The failed command
            original_prompt: The request that produced the command, if known

        Returns:
            A ``reader(writer)`` callable
        """
        self._logger.info(f"Analyzing failed command: '{result.command}'")
        chunks = self._stream(
            prompts.command_analysis_prompt(
                result,
                self._history.format(),
                self._settings.language,
                original_prompt,
            )
        )
        read = self._reader_factory(()).bind(chunks)

        def _read_analysis(writer: Writer) -> str:
            return read(writer, analysis=True)

        return _read_analysis
