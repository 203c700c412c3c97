import logging
import socket
import threading
import time

import pytest

from bjclient.lifecycle import ConnectionManager

# Suppress INFO & DEBUG logs from reader threads during tests
logging.basicConfig(level=logging.WARNING)


class FakeTransport:
    """In-memory stand-in for LineTransport that records every line sent."""

    def __init__(self, on_line, on_closed, *, fail_open: bool = False) -> None:
        self.on_line = on_line
        self.on_closed = on_closed
        self.fail_open = fail_open
        self.address = None
        self.sent: list[str] = []
        self.closed = False

    def open(self, address):
        if self.fail_open:
            raise ConnectionRefusedError("connection refused")
        self.address = address
        return self

    def send(self, line: str) -> bool:
        if self.closed:
            return False
        self.sent.append(line)
        return True

    def close(self) -> None:
        self.closed = True

    # Test helpers ------------------------------------------------------

    def deliver(self, line: str) -> None:
        """Pretend the dealer sent *line*."""
        self.on_line(line)

    def drop(self, reason: str = "connection reset") -> None:
        """Pretend the socket died."""
        self.closed = True
        self.on_closed(reason)


class ManualTimer:
    """threading.Timer look-alike that only fires when the test says so."""

    def __init__(self, interval, fn) -> None:
        self.interval = interval
        self.fn = fn
        self.started = False
        self.cancelled = False
        self.finished = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        assert self.started and not self.cancelled and not self.finished, "firing an inactive timer"
        self.finished = True
        self.fn()


class Harness:
    """ConnectionManager wired to fake transports and manual timers."""

    def __init__(self) -> None:
        self.transports: list[FakeTransport] = []
        self.timers: list[ManualTimer] = []
        self.updates = []
        self.fail_next_open = False
        self.mgr = ConnectionManager(
            ("dealer.test", 9000),
            on_update=self.updates.append,
            transport_factory=self._make_transport,
            timer_factory=self._make_timer,
            reconnect_delay=1.0,
            keepalive_interval=3.0,
        )

    def _make_transport(self, on_line, on_closed):
        t = FakeTransport(on_line, on_closed, fail_open=self.fail_next_open)
        self.fail_next_open = False
        self.transports.append(t)
        return t

    def _make_timer(self, interval, fn):
        t = ManualTimer(interval, fn)
        self.timers.append(t)
        return t

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]

    def active_timers(self, interval: float) -> list[ManualTimer]:
        return [t for t in self.timers if t.interval == interval and t.started and not (t.cancelled or t.finished)]

    def logged_in(self, balance: int = 100) -> FakeTransport:
        """Log in as alice and complete the handshake."""
        self.mgr.login("alice", "secret")
        self.transport.deliver(f"OK user:alice balance:{balance}")
        self.transport.deliver("AWAITING INPUT")
        return self.transport


@pytest.fixture
def harness() -> Harness:
    return Harness()


@pytest.fixture
def dealer_server():
    """Localhost TCP listener; yields (address, accept) where accept() returns the server-side socket."""
    srv = socket.create_server(("127.0.0.1", 0))
    srv.settimeout(2.0)
    accepted: list[socket.socket] = []

    def accept() -> socket.socket:
        conn, _ = srv.accept()
        conn.settimeout(2.0)
        accepted.append(conn)
        return conn

    try:
        yield srv.getsockname(), accept
    finally:
        for conn in accepted:
            conn.close()
        srv.close()


class LineCollector:
    """Thread-safe sink for transport callbacks."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.closed: list[str] = []
        self.line_evt = threading.Event()
        self.closed_evt = threading.Event()
        self._lock = threading.Lock()

    def on_line(self, line: str) -> None:
        with self._lock:
            self.lines.append(line)
        self.line_evt.set()

    def on_closed(self, reason: str) -> None:
        with self._lock:
            self.closed.append(reason)
        self.closed_evt.set()

    def wait_lines(self, n: int, timeout: float = 2.0) -> list[str]:
        end = time.monotonic() + timeout
        while time.monotonic() < end:
            with self._lock:
                if len(self.lines) >= n:
                    return list(self.lines)
            self.line_evt.wait(0.05)
            self.line_evt.clear()
        return list(self.lines)


@pytest.fixture
def collector() -> LineCollector:
    return LineCollector()
