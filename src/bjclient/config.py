"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so the interactive
client talks to the default dealer out of the box, while the automated
test-suite can shorten timers or point at a throwaway port.
"""

from __future__ import annotations

import os

# ===========================================================================
# Network Defaults
# ===========================================================================
# BJ_HOST: Address of the dealer process.
#   Defaults to "127.0.0.1".
#   Example: export BJ_HOST=dealer.example.org
DEFAULT_HOST: str = os.getenv("BJ_HOST", "127.0.0.1")

# BJ_PORT: TCP port the dealer listens on.
#   Defaults to 9000.
#   Example: export BJ_PORT=9001
DEFAULT_PORT: int = int(os.getenv("BJ_PORT", "9000"))

# BJ_CONNECT_TIMEOUT: seconds to wait for the TCP handshake before the attempt
#   counts as a connection loss. Defaults to 5 seconds.
CONNECT_TIMEOUT: float = float(os.getenv("BJ_CONNECT_TIMEOUT", "5"))

# Wire encoding for every line in both directions.
ENCODING: str = "utf-8"

# BJ_MAX_LINE: longest line (in bytes) accepted from the dealer. A peer that
#   sends more than this without a newline is disconnected.
#   Defaults to 4096. Example: export BJ_MAX_LINE=65536
MAX_LINE: int = int(os.getenv("BJ_MAX_LINE", "4096"))


# ===========================================================================
# Lifecycle Timing
# ===========================================================================
# BJ_RECONNECT_DELAY: seconds between a connection loss and the automatic
#   reconnect attempt (only when credentials are held).
#   Defaults to 1 second. Example: export BJ_RECONNECT_DELAY=0.2
RECONNECT_DELAY: float = float(os.getenv("BJ_RECONNECT_DELAY", "1"))

# BJ_KEEPALIVE_INTERVAL: period of the STATUS probe sent while idle.
#   Defaults to 3 seconds. Example: export BJ_KEEPALIVE_INTERVAL=10
KEEPALIVE_INTERVAL: float = float(os.getenv("BJ_KEEPALIVE_INTERVAL", "3"))


# ===========================================================================
# Protocol Markers
# ===========================================================================
# Substring the dealer appends when it is ready for the next command.
READY_MARKER: str = "AWAITING INPUT"

# Probe command used by the keepalive timer.
KEEPALIVE_COMMAND: str = "STATUS"


# ===========================================================================
# Game Constants
# ===========================================================================
# BJ_STARTING_BALANCE: balance shown before the dealer reports the real one.
#   Defaults to 100.
STARTING_BALANCE: int = int(os.getenv("BJ_STARTING_BALANCE", "100"))

# BJ_BET_OPTIONS: comma-separated bet sizes offered by the front end.
#   Defaults to "10,25,50". Example: export BJ_BET_OPTIONS="5,10,100"
BET_OPTIONS: tuple[int, ...] = tuple(
    int(v) for v in os.getenv("BJ_BET_OPTIONS", "10,25,50").split(",") if v.strip()
)


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# BJ_DEBUG: If "1", enables detailed debug logging (every line in and out).
#   Defaults to "0" (disabled).
#   Example: export BJ_DEBUG=1
DEBUG: bool = os.getenv("BJ_DEBUG", "0") == "1"
