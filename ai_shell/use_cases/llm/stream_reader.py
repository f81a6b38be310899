"""
Cancellable reader driving the stream decoder over a live response.
"""

import logging
from contextlib import AbstractContextManager
from typing import Any, Callable, Iterable, Optional, Protocol

from ai_shell.adapters.terminal.interrupts import SigintHandler, exclusive_sigint
from ai_shell.adapters.terminal.key_watcher import KeyPressWatcher
from ai_shell.entities.stream import DecodeState
from ai_shell.ports.llm.completion_port import ChunkStream
from ai_shell.use_cases.llm.stream_decoder import StreamDecoder, Writer

ANALYSIS_STOPPED_TEXT = "Analysis stopped by user, treating it as complete."
ANALYSIS_COMPLETE_TEXT = "Analysis complete"

KeyWatcherFactory = Callable[[Callable[[], None]], AbstractContextManager[Any]]
InterruptGuard = Callable[[SigintHandler], AbstractContextManager[Any]]


class StreamReadFn(Protocol):
    def __call__(self, writer: Writer, analysis: bool = False) -> str: ...


class StreamReader:
    """
    Read one streamed answer with support for early termination.

    In normal mode pressing ``q`` or Esc stops the stream. In analysis mode
    Ctrl-C stops it instead, and the partial answer is returned as a complete
    one. Stopping is cooperative: it takes effect at the next frame boundary.
    """

    def __init__(
        self,
        decoder: StreamDecoder,
        key_watcher_factory: KeyWatcherFactory = KeyPressWatcher,
        interrupt_guard: InterruptGuard = exclusive_sigint,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the reader.

        Args:
            decoder: Decoder configured with the exclusions for this request type
            key_watcher_factory: Builds the key watcher given the stop callback
            interrupt_guard: Scoped SIGINT ownership used in analysis mode
            logger: Logger instance to use for logging
        """
        self._decoder = decoder
        self._key_watcher_factory = key_watcher_factory
        self._interrupt_guard = interrupt_guard
        self._logger = logger or logging.getLogger(__name__)

    def read(
        self, chunks: Iterable[str], writer: Writer, analysis: bool = False
    ) -> str:
        """
        Decode ``chunks`` to ``writer`` until the stream ends or is stopped.

        Args:
            chunks: Raw response chunks
            writer: Callback receiving each clean fragment
            analysis: Use Ctrl-C instead of key presses to stop

        Returns:
            The text accumulated so far when the read ended

        Raises:
            LLMError: If the underlying stream fails
        """
        state = DecodeState()

        def _stop() -> None:
            state.request_stop()
            if isinstance(chunks, ChunkStream):
                chunks.cancel()

        if analysis:

            def _on_interrupt(signum: int, frame: Any) -> None:
                if state.stopped_by_user:
                    return
                state.stopped_by_user = True
                writer(f"\n\n{ANALYSIS_STOPPED_TEXT}\n")
                _stop()

            guard = self._interrupt_guard(_on_interrupt)
        else:
            guard = self._key_watcher_factory(_stop)

        with guard:
            text = self._decoder.decode(chunks, writer, state)

        if state.stopped_by_user:
            writer(f"\n{ANALYSIS_COMPLETE_TEXT}\n")
        elif state.stop_requested:
            self._logger.debug("Stream stopped by key press")
        return text

    def bind(self, chunks: Iterable[str]) -> StreamReadFn:
        """Return a ``reader(writer, analysis=False)`` callable over ``chunks``."""

        def _read(writer: Writer, analysis: bool = False) -> str:
            return self.read(chunks, writer, analysis=analysis)

        return _read
