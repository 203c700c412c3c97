"""Single-slot flow control: at most one command on the wire at a time."""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class CommandGate:
    """
    Holds the ``ready`` flag for one connection.

    The flag is set when the dealer asks for input (or a fresh connection has
    nothing outstanding) and cleared by every successful :meth:`try_send`.
    Commands offered while the flag is clear are dropped, not queued.
    """

    def __init__(self, send: Callable[[str], bool]):
        self._send = send
        self._ready = False
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._ready

    def open(self) -> None:
        """Mark the dealer as ready for the next command."""
        with self._lock:
            self._ready = True

    def reset(self) -> None:
        """Close the gate; whatever was pending is forgotten."""
        with self._lock:
            self._ready = False

    def try_send(self, command: str) -> bool:
        """
        Send *command* and close the gate if it is open.
        Returns False without touching the transport otherwise.
        """
        with self._lock:
            if not self._ready:
                logger.debug("gate closed, dropping %r", command.split(" ", 1)[0])
                return False
            self._ready = False
        # Transport failures surface later as a close; the slot stays taken.
        self._send(command)
        return True
