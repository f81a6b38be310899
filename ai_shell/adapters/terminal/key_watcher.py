"""
Key-press watcher used to stop a streamed answer early.

q   - Stop streaming
ESC - Stop streaming
"""

import logging
import os
import select
import sys
import threading
from typing import Callable, Iterable, Optional

try:
    import termios
    import tty

    HAS_TERMIOS = True
except ImportError:
    HAS_TERMIOS = False

ESC = "\x1b"
STOP_KEYS = ("q", ESC)
# Arrow and function keys send ESC followed by more bytes within this delay
ESCAPE_SEQUENCE_DELAY = 0.03


class KeyPressWatcher:
    """
    Watch stdin for stop keys while a stream is being read.

    Usage:
        with KeyPressWatcher(state.request_stop):
            ...

    POSIX only: stdin is switched to cbreak mode for the duration of the block
    and restored afterwards. On other platforms, or when stdin is not a
    terminal, the watcher does nothing.
    """

    def __init__(
        self,
        on_key: Callable[[], None],
        keys: Iterable[str] = STOP_KEYS,
        poll_interval: float = 0.05,
        logger: Optional[logging.Logger] = None,
    ):
        self._on_key = on_key
        self._keys = frozenset(keys)
        self._poll_interval = poll_interval
        self._logger = logger or logging.getLogger(__name__)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._fd: Optional[int] = None
        self._original_settings: Optional[list] = None

    def __enter__(self) -> "KeyPressWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def start(self) -> None:
        if not HAS_TERMIOS:
            return
        try:
            if not sys.stdin.isatty():
                return
            self._fd = sys.stdin.fileno()
            self._original_settings = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        except (OSError, ValueError, termios.error) as e:
            self._logger.debug(f"Key watcher disabled: {e}")
            self._fd = None
            self._original_settings = None
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._watch, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=0.5)
        self._thread = None

        if self._fd is not None and self._original_settings is not None:
            try:
                termios.tcsetattr(self._fd, termios.TCSADRAIN, self._original_settings)
            except (OSError, termios.error) as e:
                self._logger.debug(f"Could not restore terminal settings: {e}")
        self._fd = None
        self._original_settings = None

    def _watch(self) -> None:
        fd = self._fd
        if fd is None:
            return
        while not self._stop_event.is_set():
            try:
                ready, _, _ = select.select([fd], [], [], self._poll_interval)
                if not ready:
                    continue
                char = os.read(fd, 1).decode("utf-8", errors="ignore")
                if char == ESC and self._followed_by_more(fd):
                    os.read(fd, 32)
                    continue
            except (OSError, ValueError):
                return
            if char in self._keys:
                self._logger.debug(f"Stop key pressed: {char!r}")
                self._on_key()

    @staticmethod
    def _followed_by_more(fd: int) -> bool:
        ready, _, _ = select.select([fd], [], [], ESCAPE_SEQUENCE_DELAY)
        return bool(ready)
