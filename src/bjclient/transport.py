"""Newline-delimited text transport over one TCP socket.

A daemon reader thread turns the byte stream into complete lines and hands
each one to ``on_line``; when the stream ends for any reason ``on_closed`` is
called exactly once. Sending never raises: a write on a dead socket simply
returns False and the reader thread reports the close.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import Callable, List, Optional, Tuple

from . import config as _cfg

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


class LineTooLong(Exception):
    """Raised when the peer sends more than ``max_line`` bytes without a newline."""


class LineBuffer:
    """Accumulate raw bytes and release only complete lines."""

    def __init__(self, encoding: str = _cfg.ENCODING, max_line: int = _cfg.MAX_LINE):
        self.encoding = encoding
        self.max_line = max_line
        self._buf = bytearray()

    @property
    def pending(self) -> bytes:
        return bytes(self._buf)

    def feed(self, data: bytes) -> List[str]:
        self._buf.extend(data)
        lines: List[str] = []
        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                break
            if idx > self.max_line:
                raise LineTooLong(f"line of {idx} bytes exceeds {self.max_line}")
            raw = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            # Decode per line so multi-byte glyphs split across reads stay intact.
            lines.append(raw.decode(self.encoding, errors="replace").rstrip("\r"))
        if len(self._buf) > self.max_line:
            raise LineTooLong(f"{len(self._buf)} bytes without a newline exceeds {self.max_line}")
        return lines


class LineTransport:
    """One persistent connection to the dealer."""

    def __init__(
        self,
        on_line: Callable[[str], None],
        on_closed: Callable[[str], None],
        *,
        connect_timeout: float = _cfg.CONNECT_TIMEOUT,
        recv_size: int = 4096,
        max_line: int = _cfg.MAX_LINE,
    ):
        self.on_line = on_line
        self.on_closed = on_closed
        self.connect_timeout = connect_timeout
        self.recv_size = recv_size
        self.max_line = max_line
        self._sock: Optional[socket.socket] = None
        self._reader: Optional[threading.Thread] = None
        self._closed_fired = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._sock is not None and not self._closed_fired

    def open(self, address: Address) -> "LineTransport":
        """Connect to *address* and start the reader thread.

        Raises OSError if the connection cannot be established.
        """
        sock = socket.create_connection(address, timeout=self.connect_timeout)
        sock.settimeout(None)
        # Enable TCP keepalive to detect dead peers between probes
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        except OSError:
            pass  # Not all platforms support this, but try
        self._sock = sock
        logger.info("Connected to dealer at %s:%s", *address)
        self._reader = threading.Thread(target=self._recv_loop, name="bj-reader", daemon=True)
        self._reader.start()
        return self

    def send(self, line: str) -> bool:
        sock = self._sock
        if sock is None or self._closed_fired:
            logger.debug("send() on closed transport, dropped %r", line.split(" ", 1)[0])
            return False
        try:
            sock.sendall((line + "\n").encode(_cfg.ENCODING))
        except OSError as exc:
            logger.warning("send() failed: %s", exc)
            return False
        return True

    def close(self) -> None:
        sock = self._sock
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # already disconnected
        sock.close()
        # A reader blocked in recv() wakes up and reports the close itself.
        if self._reader is None:
            self._fire_closed("closed locally")

    def _fire_closed(self, reason: str) -> None:
        with self._lock:
            if self._closed_fired:
                return
            self._closed_fired = True
        logger.info("Connection closed: %s", reason)
        self.on_closed(reason)

    def _recv_loop(self) -> None:  # runs on the reader thread
        sock = self._sock
        assert sock is not None
        buf = LineBuffer(max_line=self.max_line)
        reason = "connection closed by peer"
        try:
            while True:
                data = sock.recv(self.recv_size)
                if not data:
                    break
                for line in buf.feed(data):
                    if not line.strip():
                        continue
                    logger.debug("<< %s", line)
                    self.on_line(line)
        except LineTooLong as exc:
            logger.warning("Dropping connection: %s", exc)
            reason = str(exc)
        except OSError as exc:
            reason = str(exc) or exc.__class__.__name__
        except Exception as exc:  # noqa: BLE001
            logger.exception("Receiver thread crashed: %r", exc)
            reason = f"receiver crashed: {exc!r}"
        finally:
            if buf.pending:
                logger.debug("Discarding %d bytes of partial line", len(buf.pending))
            try:
                sock.close()
            except OSError:
                pass
            self._fire_closed(reason)
