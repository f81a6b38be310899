"""
Stream domain entities shared by the decoder and the reader.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence, Union

ExclusionPattern = Union["re.Pattern[str]", str]

# Models answer with markdown code fences such as "```bash"
SHELL_CODE_EXCLUSIONS: tuple[ExclusionPattern, ...] = (
    re.compile(r"```[a-zA-Z]*\n", re.IGNORECASE),
    re.compile(r"```[a-zA-Z]*", re.IGNORECASE),
    "\n",
)

DONE_MARKER = "[DONE]"
DATA_PREFIX = "data:"
EVENT_DELIMITER = "\n\n"


def strip_exclusions(text: str, exclusions: Sequence[ExclusionPattern]) -> str:
    """Remove every exclusion from ``text``: regexes globally, strings literally."""
    for pattern in exclusions:
        if isinstance(pattern, str):
            if pattern:
                text = text.replace(pattern, "")
        else:
            text = pattern.sub("", text)
    return text


@dataclass(frozen=True)
class StreamEvent:
    """A single decoded server-sent event."""

    raw: str
    content: str = ""
    done: bool = False
    diagnostic: Optional[str] = None


@dataclass
class DecodeState:
    """Mutable state of one decode operation. Never shared across requests."""

    output: str = ""
    lookbehind: str = ""
    pending: str = ""
    started: bool = False
    stop_requested: bool = False
    stopped_by_user: bool = False
    finished: bool = False

    def request_stop(self) -> None:
        self.stop_requested = True
