"""
Tests for scoped SIGINT ownership and the key-press watcher.
"""

import os
import signal
import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from ai_shell.adapters.terminal.interrupts import exclusive_sigint
from ai_shell.adapters.terminal.key_watcher import KeyPressWatcher

pytestmark = pytest.mark.skipif(os.name == "nt", reason="POSIX signals required")


@pytest.fixture
def previous_handler():
    calls = []

    def handler(signum, frame):
        calls.append(signum)

    original = signal.signal(signal.SIGINT, handler)
    handler.calls = calls
    yield handler
    signal.signal(signal.SIGINT, original)


class TestExclusiveSigint:
    """Test cases for exclusive_sigint."""

    def test_handler_is_exclusive(self, previous_handler):
        """Test that only the scoped handler sees Ctrl-C while active."""
        received = []

        with exclusive_sigint(lambda signum, frame: received.append(signum)):
            os.kill(os.getpid(), signal.SIGINT)
            time.sleep(0.01)

        assert received == [signal.SIGINT]
        assert previous_handler.calls == []

    def test_previous_handler_restored(self, previous_handler):
        """Test that the prior handler is back and working after the block."""
        with exclusive_sigint(lambda signum, frame: None):
            pass

        assert signal.getsignal(signal.SIGINT) is previous_handler
        os.kill(os.getpid(), signal.SIGINT)
        time.sleep(0.01)
        assert previous_handler.calls == [signal.SIGINT]

    def test_restored_on_error(self, previous_handler):
        """Test restoration when the guarded block raises."""
        with pytest.raises(RuntimeError):
            with exclusive_sigint(lambda signum, frame: None):
                raise RuntimeError("stream failed")

        assert signal.getsignal(signal.SIGINT) is previous_handler

    def test_off_main_thread_is_noop(self, previous_handler, mock_logger):
        """Test that worker threads never touch signal handlers."""
        entered = []

        def run():
            with exclusive_sigint(lambda signum, frame: None, logger=mock_logger):
                entered.append(signal.getsignal(signal.SIGINT))

        thread = threading.Thread(target=run)
        thread.start()
        thread.join()

        assert entered == [previous_handler]
        mock_logger.debug.assert_called_once()


class TestKeyPressWatcher:
    """Test cases for the KeyPressWatcher."""

    def test_noop_without_terminal(self):
        """Test that the watcher does nothing when stdin is not a terminal."""
        on_key = MagicMock()
        fake_stdin = MagicMock()
        fake_stdin.isatty.return_value = False

        with patch("ai_shell.adapters.terminal.key_watcher.sys.stdin", fake_stdin):
            with KeyPressWatcher(on_key) as watcher:
                assert watcher._thread is None

        on_key.assert_not_called()

    def test_stop_key_triggers_callback(self):
        """Test that a stop key read from the terminal fires the callback."""
        read_fd, write_fd = os.pipe()
        on_key = MagicMock()
        watcher = KeyPressWatcher(on_key, poll_interval=0.01)
        watcher._fd = read_fd
        thread = threading.Thread(target=watcher._watch, daemon=True)
        try:
            thread.start()
            os.write(write_fd, b"xq")
            deadline = time.monotonic() + 2.0
            while not on_key.called and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            watcher._stop_event.set()
            thread.join(timeout=1.0)
            os.close(read_fd)
            os.close(write_fd)

        on_key.assert_called_once()

    def _run_watcher(self, payloads):
        read_fd, write_fd = os.pipe()
        on_key = MagicMock()
        watcher = KeyPressWatcher(on_key, poll_interval=0.01)
        watcher._fd = read_fd
        thread = threading.Thread(target=watcher._watch, daemon=True)
        try:
            thread.start()
            for payload in payloads:
                os.write(write_fd, payload)
                time.sleep(0.2)
        finally:
            watcher._stop_event.set()
            thread.join(timeout=1.0)
            os.close(read_fd)
            os.close(write_fd)
        return on_key

    def test_arrow_keys_do_not_stop(self):
        """Test that escape sequences are not mistaken for a bare Esc."""
        on_key = self._run_watcher([b"\x1b[A", b"\x1b[B", b"\x1bOP"])

        on_key.assert_not_called()

    def test_bare_escape_stops(self):
        """Test that Esc on its own still fires the callback."""
        on_key = self._run_watcher([b"\x1b[D", b"\x1b"])

        on_key.assert_called_once()
