from __future__ import annotations

import signal
import threading
from typing import Optional


class InterruptWatcher:
    """Sets a cancellation token on SIGINT while active.

    The previous SIGINT disposition is restored on exit. Only the main thread
    may install signal handlers; elsewhere the token is left to the caller.
    """

    def __init__(self, token: Optional[threading.Event] = None) -> None:
        self.token = token if token is not None else threading.Event()
        self._previous = None
        self._installed = False

    def _handler(self, signum, frame) -> None:
        self.token.set()

    def __enter__(self) -> threading.Event:
        if threading.current_thread() is threading.main_thread():
            self._previous = signal.signal(signal.SIGINT, self._handler)
            self._installed = True
        return self.token

    def __exit__(self, *exc) -> None:
        if self._installed:
            signal.signal(signal.SIGINT, self._previous if self._previous is not None else signal.SIG_DFL)
            self._installed = False
