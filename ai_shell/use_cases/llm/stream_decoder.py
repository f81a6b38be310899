"""
Decoder turning a raw chat-completion event stream into clean text.
"""

import json
import logging
from typing import Callable, Iterable, Optional, Sequence

from ai_shell.entities.stream import (
    DATA_PREFIX,
    DONE_MARKER,
    EVENT_DELIMITER,
    DecodeState,
    ExclusionPattern,
    StreamEvent,
    strip_exclusions,
)

Writer = Callable[[str], object]


class StreamDecoder:
    """
    Decode server-sent-event frames into text fragments.

    The first exclusion pattern doubles as the start-of-content marker: nothing
    is emitted until it has been seen in the incoming text. Once emission has
    started, every exclusion pattern is stripped from each fragment.
    """

    def __init__(
        self,
        exclusions: Sequence[ExclusionPattern] = (),
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the decoder.

        Args:
            exclusions: Ordered patterns removed from emitted text
            logger: Logger instance to use for logging
        """
        self.exclusions: tuple[ExclusionPattern, ...] = tuple(
            p for p in exclusions if p is not None
        )
        self._logger = logger or logging.getLogger(__name__)

    def parse_event(self, payload: str) -> StreamEvent:
        """
        Parse one ``data:`` frame into a StreamEvent.

        A frame that is not valid JSON degrades to an empty fragment with a
        diagnostic attached.
        """
        if DONE_MARKER in payload:
            return StreamEvent(raw=payload, done=True)

        body = payload.lstrip("\n")
        if body.startswith(DATA_PREFIX):
            body = body[len(DATA_PREFIX) :]
        body = body.strip()
        try:
            delta = json.loads(body)
        except ValueError as e:
            return StreamEvent(
                raw=payload,
                diagnostic=f"Error parsing stream payload {payload!r}: {e}",
            )
        return StreamEvent(raw=payload, content=self._extract_content(delta))

    @staticmethod
    def _extract_content(delta: object) -> str:
        if not isinstance(delta, dict):
            return ""
        choices = delta.get("choices") or []
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0]
        if not isinstance(first, dict):
            return ""
        inner = first.get("delta") or {}
        content = inner.get("content") if isinstance(inner, dict) else None
        return content if isinstance(content, str) else ""

    def feed(self, chunk: str, state: DecodeState) -> list[str]:
        """
        Process one raw chunk of the response body.

        Complete frames are decoded; a trailing partial frame is kept in
        ``state.pending`` until the next chunk or :meth:`flush`.

        Returns:
            The clean fragments emitted while processing the chunk
        """
        emitted: list[str] = []
        if state.finished:
            return emitted
        if state.stop_requested:
            state.finished = True
            return emitted

        text = (state.pending + chunk).replace("\r\n", "\n")
        frames = text.split(EVENT_DELIMITER)
        state.pending = frames.pop()
        for frame in frames:
            if not self._process_frame(frame, state, emitted):
                break
        return emitted

    def flush(self, state: DecodeState) -> list[str]:
        """Decode whatever partial frame is left once the stream has ended."""
        emitted: list[str] = []
        pending, state.pending = state.pending, ""
        if not state.finished and pending.strip():
            self._process_frame(pending, state, emitted)
        state.finished = True
        return emitted

    def decode(
        self,
        chunks: Iterable[str],
        writer: Writer,
        state: Optional[DecodeState] = None,
    ) -> str:
        """
        Decode a whole stream, writing fragments as they arrive.

        Args:
            chunks: Lazy sequence of raw response chunks
            writer: Callback receiving each clean fragment
            state: Decode state; a fresh one is used when omitted

        Returns:
            The accumulated clean text
        """
        state = state if state is not None else DecodeState()
        for chunk in chunks:
            for fragment in self.feed(chunk, state):
                writer(fragment)
            if state.finished:
                break
        if not state.finished:
            for fragment in self.flush(state):
                writer(fragment)
        state.finished = True
        return state.output

    def _process_frame(
        self, frame: str, state: DecodeState, emitted: list[str]
    ) -> bool:
        """Handle one frame. Returns False when decoding must end."""
        if DONE_MARKER in frame or state.stop_requested:
            state.finished = True
            return False

        if not frame.lstrip("\n").startswith(DATA_PREFIX):
            return True

        event = self.parse_event(frame)
        if event.diagnostic:
            self._logger.debug(event.diagnostic)
        fragment = event.content

        if not state.started:
            fragment = self._detect_start(fragment, state)
            if not state.started:
                return True

        if fragment:
            clean = strip_exclusions(fragment, self.exclusions)
            if clean:
                state.output += clean
                emitted.append(clean)
        return True

    def _detect_start(self, fragment: str, state: DecodeState) -> str:
        """
        Look for the start-of-content marker in the look-behind buffer.

        Returns the part of the buffer following the marker, or the fragment
        itself when no marker is configured.
        """
        if not self.exclusions:
            state.started = True
            return fragment

        state.lookbehind += fragment
        marker = self.exclusions[0]
        if isinstance(marker, str):
            index = state.lookbehind.find(marker)
            end = index + len(marker) if index >= 0 else -1
        else:
            match = marker.search(state.lookbehind)
            end = match.end() if match else -1
        if end < 0:
            return ""

        remainder = state.lookbehind[end:]
        state.started = True
        state.lookbehind = ""
        return remainder
