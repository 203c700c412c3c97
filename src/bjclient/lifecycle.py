"""ConnectionManager: connect, log in, keep alive and reconnect to the dealer.

The manager owns the transport, the command gate and the game state of one
session. Lines from the reader thread, keepalive/reconnect timer ticks and
user commands all enter through methods that take the same re-entrant lock,
so each one is handled to completion before the next is looked at.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional

from . import config as _cfg
from . import state as _state
from .events import ErrorMessage, LoginAccepted, ProtocolEvent, Unrecognized
from .gate import CommandGate
from .parser import is_ready_signal, parse
from .state import GameState
from .transport import Address, LineTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[Callable[[str], None], Callable[[str], None]], LineTransport]
TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class Phase(enum.Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    AWAITING_LOGIN_RESULT = "AWAITING_LOGIN_RESULT"
    AWAITING_INPUT = "AWAITING_INPUT"
    COMMAND_IN_FLIGHT = "COMMAND_IN_FLIGHT"
    CLOSING = "CLOSING"


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


def _daemon_timer(interval: float, fn: Callable[[], None]) -> threading.Timer:
    t = threading.Timer(interval, fn)
    t.daemon = True
    return t


def _redact(command: str) -> str:
    if command.upper().startswith("LOGIN "):
        username = command.split(" ")[1]
        return f"LOGIN {username} ***"
    return command


class ConnectionManager:
    """
    Drives one logical session against the dealer.

    ``on_update`` receives an immutable :class:`GameState` snapshot after
    every change, including status-message-only changes.
    """

    def __init__(
        self,
        address: Address,
        *,
        on_update: Optional[Callable[[GameState], None]] = None,
        transport_factory: TransportFactory = LineTransport,
        timer_factory: TimerFactory = _daemon_timer,
        reconnect_delay: float = _cfg.RECONNECT_DELAY,
        keepalive_interval: float = _cfg.KEEPALIVE_INTERVAL,
    ):
        self.address = address
        self.on_update = on_update
        self.transport_factory = transport_factory
        self.timer_factory = timer_factory
        self.reconnect_delay = reconnect_delay
        self.keepalive_interval = keepalive_interval

        self.phase = Phase.DISCONNECTED
        self.credentials: Optional[Credentials] = None
        self.state = GameState()

        self._lock = threading.RLock()
        self._transport: Optional[LineTransport] = None
        self._gate: Optional[CommandGate] = None
        self._keepalive: Optional[threading.Timer] = None
        self._reconnect: Optional[threading.Timer] = None

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        """True when a user command would be put on the wire right now."""
        with self._lock:
            return self.phase is Phase.AWAITING_INPUT and self._gate is not None and self._gate.ready

    def login(self, username: str, password: str) -> None:
        """Remember *username*/*password* and open a fresh connection."""
        if not username or not password:
            raise ValueError("username and password are required")
        with self._lock:
            self.credentials = Credentials(username, password)
            self._cancel_reconnect()
            if self._transport is not None:
                self._drop_transport()
            self._set_state(GameState(message="Logging in..."))
            self._connect()

    def logout(self) -> None:
        """Forget credentials and close the session for good."""
        with self._lock:
            logger.info("Logging out")
            self.credentials = None
            self._cancel_reconnect()
            self._drop_transport()
            self._set_state(GameState(message="Please log in."))

    def send_command(self, command: str) -> bool:
        """Put *command* on the wire if the dealer is waiting for input.

        Returns False (and sends nothing) otherwise; the command is dropped.
        """
        with self._lock:
            if self.phase is not Phase.AWAITING_INPUT or self._gate is None:
                logger.debug("send_command(%r) ignored in phase %s", command, self.phase.value)
                return False
            if not self._gate.try_send(command):
                return False
            self.phase = Phase.COMMAND_IN_FLIGHT
            return True

    def bet(self, amount: int) -> bool:
        return self._act(f"BET {amount}", lambda s: _state.place_bet(s, amount))

    def hit(self) -> bool:
        return self._act("HIT", _state.hit)

    def stand(self) -> bool:
        return self._act("STAND", _state.stand)

    def double(self) -> bool:
        return self._act("DOUBLE", _state.double_down)

    def new_round(self) -> None:
        with self._lock:
            self._set_state(_state.new_round(self.state))

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _on_line(self, transport: LineTransport, line: str) -> None:
        with self._lock:
            if transport is not self._transport:
                logger.debug("Ignoring line from stale transport: %r", line)
                return
            event = parse(line)
            self._apply(event)
            if transport is not self._transport:
                return  # dropped while applying
            if is_ready_signal(line):
                self._gate.open()
                if self.phase is Phase.COMMAND_IN_FLIGHT:
                    self.phase = Phase.AWAITING_INPUT

    def _on_closed(self, transport: LineTransport, reason: str) -> None:
        with self._lock:
            if transport is not self._transport:
                return
            self._handle_close(reason)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _act(self, command: str, local: Callable[[GameState], GameState]) -> bool:
        """Validate *local* first, send *command*, then commit the optimistic update."""
        with self._lock:
            optimistic = local(self.state)
            if not self.send_command(command):
                return False
            self._set_state(optimistic)
            return True

    def _apply(self, event: ProtocolEvent) -> None:
        if isinstance(event, Unrecognized):
            if event.text:
                logger.info("Unrecognized line from dealer: %r", event.text)
        else:
            logger.debug("event %r", event)
        if isinstance(event, ErrorMessage) and self.phase is Phase.AWAITING_LOGIN_RESULT:
            # Rejected credentials are never retried.
            logger.warning("Login refused: %s", event.text)
            self.credentials = None
            self._cancel_reconnect()
            self._drop_transport()
            self._set_state(GameState(message=event.text))
            return
        if isinstance(event, LoginAccepted) and self.phase is Phase.AWAITING_LOGIN_RESULT:
            # LOGIN stays in flight until the dealer asks for input.
            self.phase = Phase.AWAITING_INPUT if self._gate.ready else Phase.COMMAND_IN_FLIGHT
            logger.info("Logged in as %s (balance %d)", event.username, event.balance)
            self._start_keepalive()
        new = _state.reduce(self.state, event)
        if new != self.state:
            self._set_state(new)

    def _set_state(self, new: GameState) -> None:
        self.state = new
        if self.on_update is not None:
            self.on_update(new)

    def _set_message(self, message: str) -> None:
        self._set_state(replace(self.state, message=message))

    def _connect(self) -> None:
        creds = self.credentials
        assert creds is not None
        self.phase = Phase.CONNECTING
        transport = self.transport_factory(
            lambda line: self._on_line(transport, line),
            lambda reason: self._on_closed(transport, reason),
        )
        self._transport = transport
        self._gate = CommandGate(self._sender(transport))
        logger.info("Connecting to %s:%s as %s", self.address[0], self.address[1], creds.username)
        try:
            transport.open(self.address)
        except OSError as exc:
            logger.info("Dealer not reachable at %s:%s (%s)", self.address[0], self.address[1], exc)
            self._handle_close(str(exc))
            return
        if transport is not self._transport:
            return  # closed while opening
        self.phase = Phase.AWAITING_LOGIN_RESULT
        # A fresh connection has nothing in flight: LOGIN goes first.
        self._gate.open()
        self._gate.try_send(f"LOGIN {creds.username} {creds.password}")

    def _sender(self, transport: LineTransport) -> Callable[[str], bool]:
        def _send(command: str) -> bool:
            logger.debug(">> %s", _redact(command))
            return transport.send(command)

        return _send

    def _handle_close(self, reason: str) -> None:
        self.phase = Phase.CLOSING
        self._cancel_keepalive()
        if self._gate is not None:
            self._gate.reset()
        self._transport = None
        self._gate = None
        self.phase = Phase.DISCONNECTED
        if self.credentials is not None:
            logger.info("Connection lost (%s), reconnecting in %.1fs", reason, self.reconnect_delay)
            self._set_message("Connection lost. Reconnecting...")
            self._schedule_reconnect()
        else:
            logger.info("Connection lost (%s), no credentials, staying offline", reason)
            self._set_message("Please log in.")

    def _drop_transport(self) -> None:
        """Close the current transport without triggering a reconnect."""
        transport = self._transport
        self._cancel_keepalive()
        if self._gate is not None:
            self._gate.reset()
        self._transport = None
        self._gate = None
        if transport is not None:
            self.phase = Phase.CLOSING
            transport.close()
        self.phase = Phase.DISCONNECTED

    # -------------------------- timers --------------------------------

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect()
        # TODO: grow the delay per consecutive failure instead of a fixed retry interval.
        timer = self.timer_factory(self.reconnect_delay, lambda: self._reconnect_tick(timer))
        self._reconnect = timer
        timer.start()

    def _reconnect_tick(self, timer: threading.Timer) -> None:
        with self._lock:
            if timer is not self._reconnect:
                return
            self._reconnect = None
            if self.phase is not Phase.DISCONNECTED or self.credentials is None:
                return
            logger.info("Reconnecting as %s", self.credentials.username)
            self._connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect is not None:
            self._reconnect.cancel()
            self._reconnect = None

    def _start_keepalive(self) -> None:
        self._cancel_keepalive()
        timer = self.timer_factory(self.keepalive_interval, lambda: self._keepalive_tick(timer))
        self._keepalive = timer
        timer.start()

    def _keepalive_tick(self, timer: threading.Timer) -> None:
        with self._lock:
            if timer is not self._keepalive:
                return
            if self.phase is Phase.AWAITING_INPUT:
                self.send_command(_cfg.KEEPALIVE_COMMAND)
            self._start_keepalive()

    def _cancel_keepalive(self) -> None:
        if self._keepalive is not None:
            self._keepalive.cancel()
            self._keepalive = None
