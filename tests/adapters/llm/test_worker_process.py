"""
Tests for the generation worker protocol loop.
"""

import io
import json
import os
import signal
from unittest.mock import MagicMock

import pytest

from ai_shell.adapters.llm.worker_process import (
    WorkerChannel,
    error_payload,
    handle_generate,
    ignore_interrupts,
    serve,
)
from ai_shell.exceptions import KnownError


def _messages(stream: io.StringIO):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def _generate(request_id, prompt="list files"):
    return json.dumps(
        {
            "type": "generate",
            "id": request_id,
            "prompt": prompt,
            "key": "test-key",
            "model": "gpt-4o-mini",
            "apiEndpoint": "https://api.example.com/v1",
            "number": 1,
        }
    )


class TestServe:
    """Test cases for the worker request loop."""

    def test_ready_then_chunks_then_done(self):
        """Test the message sequence of a successful request."""
        adapter = MagicMock()
        adapter.iter_chunks.return_value = iter(["data: a\n\n", "data: [DONE]\n\n"])
        out = io.StringIO()

        code = serve(io.StringIO(_generate(7) + "\n"), WorkerChannel(out), adapter)

        assert code == 0
        assert _messages(out) == [
            {"type": "ready"},
            {"type": "chunk", "id": 7, "data": "data: a\n\n"},
            {"type": "chunk", "id": 7, "data": "data: [DONE]\n\n"},
            {"type": "done", "id": 7},
        ]
        request = adapter.iter_chunks.call_args[0][0]
        assert request.key == "test-key"
        assert request.api_endpoint == "https://api.example.com/v1"

    def test_error_is_relayed(self):
        """Test that a failing request yields one error message and the loop goes on."""
        adapter = MagicMock()
        adapter.iter_chunks.side_effect = [
            KnownError("quota exceeded", code="429"),
            iter(["data: ok\n\n"]),
        ]
        out = io.StringIO()
        stdin = io.StringIO(_generate(1) + "\n" + _generate(2) + "\n")

        serve(stdin, WorkerChannel(out), adapter)

        messages = _messages(out)
        error = messages[1]
        assert error["type"] == "error"
        assert error["id"] == 1
        assert error["error"]["name"] == "KnownError"
        assert error["error"]["message"] == "quota exceeded"
        assert error["error"]["code"] == "429"
        assert messages[-1] == {"type": "done", "id": 2}

    def test_malformed_and_unknown_messages_are_ignored(self):
        """Test that bad input lines do not stop the worker."""
        adapter = MagicMock()
        adapter.iter_chunks.return_value = iter([])
        out = io.StringIO()
        stdin = io.StringIO('not json\n\n{"type": "ping"}\n' + _generate(3) + "\n")

        serve(stdin, WorkerChannel(out), adapter)

        assert _messages(out) == [{"type": "ready"}, {"type": "done", "id": 3}]

    def test_init_failure(self, monkeypatch):
        """Test that an adapter that cannot be built is reported instead of ready."""

        def broken(*args, **kwargs):
            raise RuntimeError("no client")

        monkeypatch.setattr(
            "ai_shell.adapters.llm.worker_process.OpenAIStreamAdapter", broken
        )
        out = io.StringIO()

        code = serve(io.StringIO(""), WorkerChannel(out))

        assert code == 1
        (message,) = _messages(out)
        assert message["type"] == "error"
        assert message["error"]["message"] == "no client"


class TestErrorPayload:
    """Test cases for error serialization."""

    def test_plain_exception(self):
        try:
            raise ValueError("bad value")
        except ValueError as e:
            payload = error_payload(e)

        assert payload["name"] == "ValueError"
        assert payload["code"] is None
        assert "bad value" in payload["stack"]

    def test_handle_generate_bad_message(self):
        """Test that a request missing its prompt is answered with an error."""
        out = io.StringIO()

        handle_generate({"type": "generate", "id": 4}, MagicMock(), WorkerChannel(out))

        (message,) = _messages(out)
        assert message["type"] == "error"
        assert message["id"] == 4

    def test_message_list_prompt_reaches_adapter(self):
        """Test that a role-tagged conversation is passed through as a list."""
        adapter = MagicMock()
        adapter.iter_chunks.return_value = iter([])
        conversation = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "and now?"},
        ]
        message = json.loads(_generate(5))
        message["prompt"] = conversation

        serve(io.StringIO(json.dumps(message) + "\n"), WorkerChannel(io.StringIO()), adapter)

        request = adapter.iter_chunks.call_args[0][0]
        assert request.prompt == conversation
        assert request.messages() == conversation


@pytest.mark.skipif(os.name == "nt", reason="POSIX signals required")
class TestIgnoreInterrupts:
    """Test cases for the worker's Ctrl-C handling."""

    def test_sigint_ignored(self):
        original = signal.getsignal(signal.SIGINT)
        try:
            ignore_interrupts()

            assert signal.getsignal(signal.SIGINT) is signal.SIG_IGN
        finally:
            signal.signal(signal.SIGINT, original)
