"""Tracking whether the user asked the program to stop."""

from __future__ import annotations

import signal as _signal
import sys
import threading
from typing import NoReturn


class Signal:
    """A flag cleared by Ctrl-C, polled by long-running child processes."""

    def __init__(self) -> None:
        self._stopped = threading.Event()

    @classmethod
    def setup(cls) -> Signal:
        """Create a Signal and install it as the SIGINT handler."""
        sig = cls()
        _signal.signal(_signal.SIGINT, lambda signum, frame: sig.stop())
        return sig

    def is_running(self) -> bool:
        return not self._stopped.is_set()

    def stop(self) -> None:
        self._stopped.set()

    def exit(self) -> NoReturn:
        sys.exit(-1)