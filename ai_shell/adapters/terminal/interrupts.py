from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

"""Scoped ownership of the SIGINT handler.

While the guard is active the given handler is the only one receiving Ctrl-C;
whatever handler was installed before is put back exactly once on exit, no
matter how the block ends.
"""

SigintHandler = Callable[[int, Any], None]

_logger = logging.getLogger(__name__)


@contextmanager
def exclusive_sigint(
    handler: SigintHandler, logger: Optional[logging.Logger] = None
) -> Iterator[None]:
    log = logger or _logger
    if threading.current_thread() is not threading.main_thread():
        # Python only lets the main thread install signal handlers
        log.debug("Not on the main thread; SIGINT ownership not taken")
        yield
        return

    previous = signal.getsignal(signal.SIGINT)
    signal.signal(signal.SIGINT, handler)
    log.debug("SIGINT handler installed")
    try:
        yield
    finally:
        signal.signal(
            signal.SIGINT, previous if previous is not None else signal.SIG_DFL
        )
        log.debug("SIGINT handler restored")
