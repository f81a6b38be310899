"""
Generation worker run as a child process so the interactive process stays
responsive to Ctrl+C while a network call is in flight.

Protocol (one JSON object per line):
- stdin:  {"type": "generate", "id", "prompt", "key", "model", "apiEndpoint", "number"}
- stdout: {"type": "ready"} once at startup, then for each request zero or more
          {"type": "chunk", "id", "data"} followed by exactly one
          {"type": "done", "id"} or {"type": "error", "id", "error": {...}}
"""

import json
import logging
import os
import signal
import sys
import traceback
from typing import IO, Any, Optional

from ai_shell.adapters.llm.openai_stream_adapter import OpenAIStreamAdapter
from ai_shell.ports.llm.completion_port import GenerationRequest

logger = logging.getLogger("ai_shell.worker")


def error_payload(error: BaseException) -> dict[str, Any]:
    code = getattr(error, "code", None)
    return {
        "message": str(error),
        "name": getattr(error, "name", None) or type(error).__name__,
        "code": None if code is None else str(code),
        "stack": "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
    }


class WorkerChannel:
    """Write protocol messages to the parent process."""

    def __init__(self, stream: IO[str]):
        self._stream = stream

    def send(self, message: dict[str, Any]) -> None:
        self._stream.write(json.dumps(message, ensure_ascii=False) + "\n")
        self._stream.flush()


def handle_generate(
    message: dict[str, Any], adapter: OpenAIStreamAdapter, channel: WorkerChannel
) -> None:
    request_id = message.get("id")
    try:
        request = GenerationRequest.from_message(message)
        for chunk in adapter.iter_chunks(request):
            channel.send({"type": "chunk", "id": request_id, "data": chunk})
    except Exception as e:
        logger.error(f"Generation failed: {e}")
        channel.send({"type": "error", "id": request_id, "error": error_payload(e)})
        return
    channel.send({"type": "done", "id": request_id})


def serve(
    stdin: IO[str],
    channel: WorkerChannel,
    adapter: Optional[OpenAIStreamAdapter] = None,
) -> int:
    """
    Announce readiness and process requests until stdin is closed.

    Returns:
        The process exit code
    """
    try:
        adapter = adapter or OpenAIStreamAdapter(logger=logger)
    except Exception as e:
        channel.send({"type": "error", "error": error_payload(e)})
        return 1

    channel.send({"type": "ready"})
    logger.debug("Worker ready")

    for line in stdin:
        line = line.strip()
        if not line:
            continue
        try:
            message = json.loads(line)
        except ValueError:
            logger.warning(f"Ignoring malformed message: {line!r}")
            continue
        kind = message.get("type") if isinstance(message, dict) else None
        logger.debug(f"Received message of type: {kind}")
        if kind == "generate":
            handle_generate(message, adapter, channel)
        else:
            logger.warning(f"Unknown message type: {kind}")
    return 0


def ignore_interrupts() -> None:
    """The parent decides when a request ends; Ctrl-C must not kill the worker."""
    signal.signal(signal.SIGINT, signal.SIG_IGN)


def main() -> int:
    logging.basicConfig(
        stream=sys.stderr,
        level=os.getenv("AI_SHELL_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ignore_interrupts()
    # stdout carries the protocol; anything printed by libraries goes to stderr
    channel = WorkerChannel(sys.stdout)
    sys.stdout = sys.stderr
    return serve(sys.stdin, channel)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
