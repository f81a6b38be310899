"""
Completion port interface defining the contract for streamed chat completions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, Union

Prompt = Union[str, list[dict[str, str]]]


@dataclass(frozen=True)
class GenerationRequest:
    """Everything needed to issue one streamed completion."""

    prompt: Prompt
    key: str
    model: str
    api_endpoint: str
    number: int = 1

    def messages(self) -> list[dict[str, str]]:
        """Return the prompt as a role-tagged message list."""
        if isinstance(self.prompt, str):
            return [{"role": "user", "content": self.prompt}]
        return list(self.prompt)

    def to_message(self, request_id: int) -> dict[str, Any]:
        return {
            "type": "generate",
            "id": request_id,
            "prompt": self.prompt,
            "key": self.key,
            "model": self.model,
            "apiEndpoint": self.api_endpoint,
            "number": self.number,
        }

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "GenerationRequest":
        return cls(
            prompt=message["prompt"],
            key=message.get("key") or "",
            model=message.get("model") or "",
            api_endpoint=message.get("apiEndpoint") or "",
            number=int(message.get("number") or 1),
        )


class ChunkStream(ABC):
    """Lazy, finite, non-restartable sequence of raw response text chunks."""

    @abstractmethod
    def __iter__(self) -> Iterator[str]:
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop the iteration at its next suspension point."""
        pass


class CompletionPort(ABC):
    """Port interface for streamed completion providers."""

    @abstractmethod
    def stream_completion(self, request: GenerationRequest) -> ChunkStream:
        """
        Start a streamed completion.

        Args:
            request: The generation request

        Returns:
            A stream of raw response chunks (server-sent-event text)

        Raises:
            LLMError: If the completion cannot be started
        """
        pass

    def close(self) -> None:
        """Release any resource held by the provider."""
        pass
