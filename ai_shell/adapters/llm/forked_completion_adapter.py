"""
Completion adapter delegating the network call to a long-lived worker process.
"""

import json
import logging
import os
import queue
import subprocess
import sys
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from typing_extensions import override

from ai_shell.exceptions import (
    KnownError,
    LLMError,
    WorkerError,
    WorkerExitedError,
    WorkerStartupError,
)
from ai_shell.ports.llm.completion_port import (
    ChunkStream,
    CompletionPort,
    GenerationRequest,
)

WORKER_MODULE = "ai_shell.adapters.llm.worker_process"
STARTUP_TIMEOUT = 10.0
POLL_INTERVAL = 0.1

_PACKAGE_ROOT = Path(__file__).resolve().parents[3]


class WorkerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    READY = "ready"
    BUSY = "busy"
    TERMINATED = "terminated"


def error_from_payload(payload: dict[str, Any]) -> LLMError:
    """Rebuild an exception relayed by the worker."""
    name = payload.get("name")
    error_cls = KnownError if name == KnownError.__name__ else LLMError
    return error_cls(
        str(payload.get("message") or "Unknown error in AI process"),
        name=name,
        code=payload.get("code"),
        remote_stack=payload.get("stack"),
    )


class WorkerHandle:
    """
    Owned, lazily started handle on the generation worker process.

    One live process is reused across requests. ``acquire()`` (re)spawns it
    when needed; ``shutdown()`` kills it and can be called any number of times.
    """

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        startup_timeout: float = STARTUP_TIMEOUT,
        env: Optional[dict[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the handle. No process is started until ``acquire()``.

        Args:
            command: Worker command line (defaults to the bundled worker module)
            startup_timeout: Seconds to wait for the ready message
            env: Extra environment variables for the worker
            logger: Logger instance to use for logging
        """
        self._command = list(command or [sys.executable, "-m", WORKER_MODULE])
        self._startup_timeout = startup_timeout
        self._extra_env = dict(env or {})
        self._logger = logger or logging.getLogger(__name__)
        self._proc: Optional[subprocess.Popen[str]] = None
        self._messages: "queue.Queue[dict[str, Any]]" = queue.Queue()
        self._next_id = 0
        self.state = WorkerState.UNINITIALIZED

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc is not None else None

    def is_alive(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def acquire(self) -> "WorkerHandle":
        """
        Make sure a ready worker process exists.

        Raises:
            WorkerStartupError: If the worker does not report ready in time
        """
        if self.is_alive():
            return self
        if self._proc is not None:
            self._logger.debug(
                f"AI process exited with code {self._proc.returncode}, respawning"
            )
            self._discard()
        self._spawn()
        return self

    def shutdown(self) -> None:
        """Kill the worker immediately. Safe to call when nothing is running."""
        proc = self._proc
        if proc is None:
            return
        if proc.poll() is None:
            self._logger.debug("Killing AI process")
            proc.kill()
            try:
                proc.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                self._logger.warning(f"AI process {proc.pid} did not exit after kill")
        self._discard()

    def start_request(self, request: GenerationRequest) -> "GenerationStream":
        """
        Send a generate request to the worker.

        Returns:
            The stream of chunks for this request

        Raises:
            WorkerError: If the worker cannot be started or written to
        """
        self.acquire()
        proc = self._proc
        if proc is None or proc.stdin is None:
            raise WorkerError("AI process is not available")

        self._next_id += 1
        request_id = self._next_id
        payload = json.dumps(request.to_message(request_id), ensure_ascii=False)
        self._logger.debug(f"Sending generate message {request_id} to AI process")
        try:
            proc.stdin.write(payload + "\n")
            proc.stdin.flush()
        except (OSError, ValueError) as e:
            self.shutdown()
            raise WorkerError(f"Could not send request to AI process: {e}")
        self.state = WorkerState.BUSY
        return GenerationStream(self, request_id, logger=self._logger)

    def next_message(self, timeout: float) -> Optional[dict[str, Any]]:
        try:
            return self._messages.get(timeout=timeout)
        except queue.Empty:
            return None

    def mark_ready(self) -> None:
        if self.is_alive():
            self.state = WorkerState.READY

    def mark_exited(self, exit_code: Optional[int]) -> None:
        self._logger.debug(f"AI process exited with code {exit_code}")
        self._discard()

    def _discard(self) -> None:
        proc, self._proc = self._proc, None
        self.state = WorkerState.TERMINATED
        if proc is None:
            return
        for pipe in (proc.stdin, proc.stdout, proc.stderr):
            if pipe is None:
                continue
            try:
                pipe.close()
            except OSError:
                pass

    def _build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["PYTHONUNBUFFERED"] = "1"
        env.setdefault("PYTHONIOENCODING", "utf-8")
        existing = env.get("PYTHONPATH")
        env["PYTHONPATH"] = (
            f"{_PACKAGE_ROOT}{os.pathsep}{existing}" if existing else str(_PACKAGE_ROOT)
        )
        env.update(self._extra_env)
        return env

    def _spawn(self) -> None:
        self.state = WorkerState.STARTING
        self._logger.debug("Starting AI process")
        try:
            proc = subprocess.Popen(
                self._command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                env=self._build_env(),
                # Keep terminal Ctrl-C away from the worker
                start_new_session=os.name != "nt",
            )
        except OSError as e:
            self.state = WorkerState.TERMINATED
            raise WorkerStartupError(f"Could not start AI process: {e}")

        messages: "queue.Queue[dict[str, Any]]" = queue.Queue()
        threading.Thread(
            target=self._pump_stdout, args=(proc, messages), daemon=True
        ).start()
        threading.Thread(target=self._pump_stderr, args=(proc,), daemon=True).start()
        self._proc = proc
        self._messages = messages

        deadline = time.monotonic() + self._startup_timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._logger.error("Timeout waiting for AI process to start")
                self.shutdown()
                raise WorkerStartupError("Timeout waiting for AI process to start")
            message = self.next_message(min(remaining, POLL_INTERVAL))
            if message is None:
                continue
            kind = message.get("type")
            if kind == "ready":
                self._logger.debug("AI process ready")
                self.state = WorkerState.READY
                return
            if kind == "error":
                self.shutdown()
                error = message.get("error") or {}
                raise WorkerStartupError(
                    str(error.get("message") or "AI process failed to start")
                )
            if kind == "exit":
                self.mark_exited(message.get("code"))
                raise WorkerStartupError(
                    f"AI process exited with code {message.get('code')}"
                )

    def _pump_stdout(
        self, proc: "subprocess.Popen[str]", messages: "queue.Queue[dict[str, Any]]"
    ) -> None:
        stdout = proc.stdout
        try:
            if stdout is not None:
                for line in stdout:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        message = json.loads(line)
                    except ValueError:
                        self._logger.debug(f"AI process stdout: {line}")
                        continue
                    if isinstance(message, dict):
                        messages.put(message)
        except (OSError, ValueError) as e:
            self._logger.debug(f"AI process stdout closed: {e}")
        finally:
            messages.put({"type": "exit", "code": proc.wait()})

    def _pump_stderr(self, proc: "subprocess.Popen[str]") -> None:
        stderr = proc.stderr
        if stderr is None:
            return
        try:
            for line in stderr:
                self._logger.debug(f"AI process stderr: {line.rstrip()}")
        except (OSError, ValueError) as e:
            self._logger.debug(f"AI process stderr closed: {e}")


class GenerationStream(ChunkStream):
    """
    Chunks of one request, read from the worker's message queue.

    The queue is polled in short intervals so signal handlers in the main
    thread run promptly. Messages belonging to another request are skipped.
    """

    def __init__(
        self,
        handle: WorkerHandle,
        request_id: int,
        poll_interval: float = POLL_INTERVAL,
        logger: Optional[logging.Logger] = None,
    ):
        self.request_id = request_id
        self._handle = handle
        self._poll_interval = poll_interval
        self._logger = logger or logging.getLogger(__name__)
        self._cancelled = False
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @override
    def cancel(self) -> None:
        self._cancelled = True

    @override
    def __iter__(self) -> Iterator[str]:
        while not self._finished:
            if self._cancelled:
                self._logger.debug(f"Request {self.request_id} cancelled")
                self._finished = True
                self._handle.mark_ready()
                return

            message = self._handle.next_message(self._poll_interval)
            if message is None:
                continue

            kind = message.get("type")
            if kind == "exit":
                self._finished = True
                code = message.get("code")
                self._handle.mark_exited(code)
                if self._cancelled:
                    return
                raise WorkerExitedError(code)
            if message.get("id") != self.request_id:
                self._logger.debug(
                    f"Dropping {kind} message from request {message.get('id')}"
                )
                continue
            if kind == "chunk":
                yield str(message.get("data") or "")
            elif kind == "done":
                self._finished = True
                self._handle.mark_ready()
            elif kind == "error":
                self._finished = True
                self._handle.mark_ready()
                raise error_from_payload(message.get("error") or {})


class ForkedCompletionAdapter(CompletionPort):
    """Completion port running every request in the isolated worker."""

    def __init__(self, handle: WorkerHandle, logger: Optional[logging.Logger] = None):
        self._handle = handle
        self._logger = logger or logging.getLogger(__name__)

    @property
    def handle(self) -> WorkerHandle:
        return self._handle

    @override
    def stream_completion(self, request: GenerationRequest) -> ChunkStream:
        return self._handle.start_request(request)

    @override
    def close(self) -> None:
        self._handle.shutdown()
