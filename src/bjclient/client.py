"""Interactive terminal client for the blackjack dealer."""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from typing import Optional

from . import config as _cfg
from .lifecycle import ConnectionManager
from .state import GameState, InvalidAction, Round

logger = logging.getLogger(__name__)

# Verbosity chosen on the command line (-1 quiet, 0 default, >=1 verbose)
_VERBOSE_LEVEL = 0

HELP = {
    Round.LOGIN: "login <user> <password> | quit",
    Round.BETTING: "bet <amount> (options: {bets}) | logout | quit",
    Round.IN_ROUND: "hit | stand | double | logout | quit",
    Round.ROUND_OVER: "new | logout | quit",
}


# ------------------------------------------------------------
# Renderer
# ------------------------------------------------------------


def _hand(cards: tuple[str, ...], total: int) -> str:
    if not cards:
        return "(no cards)  Total: ?"
    return f"{' '.join(cards)}  Total: {total}"


def _print_table(state: GameState) -> None:
    """Print dealer and player hands plus the status bar."""
    if _VERBOSE_LEVEL < 0:
        if state.message:
            print(f"\r{state.message}")
        return
    if state.round is not Round.LOGIN:
        print(f"\n[Dealer] {_hand(state.dealer.cards, state.dealer.total)}")
        print(f"[You]    {_hand(state.player.cards, state.player.total)}")
        print(f"Balance: ${state.player.balance}   Bet: ${state.player.bet}   ({state.round.value})")
    if state.message:
        print(f"\r{state.message}")


def _help_line(state: GameState) -> str:
    return HELP[state.round].format(bets=", ".join(str(b) for b in _cfg.BET_OPTIONS))


def _prompt() -> None:
    """Display the user-input prompt."""
    print(">> ", end="", flush=True)


# ------------------------------------------------------------
# Command dispatch
# ------------------------------------------------------------


def handle_input(mgr: ConnectionManager, user_input: str) -> bool:
    """Run one line of user input against *mgr*; returns False to quit."""
    parts = user_input.strip().split()
    if not parts:
        return True
    verb = parts[0].lower()
    sent: Optional[bool] = None
    try:
        if verb == "quit":
            return False
        if verb == "login":
            if len(parts) == 2:
                parts.append(getpass.getpass("Password: "))
            if len(parts) != 3:
                print("Usage: login <user> <password>")
                return True
            mgr.login(parts[1], parts[2])
        elif verb == "logout":
            mgr.logout()
        elif verb == "bet":
            if len(parts) != 2 or not parts[1].isdigit():
                print("Usage: bet <amount>")
                return True
            amount = int(parts[1])
            if amount not in _cfg.BET_OPTIONS:
                print("Bet must be one of: " + ", ".join(str(v) for v in _cfg.BET_OPTIONS))
                return True
            sent = mgr.bet(amount)
        elif verb == "hit":
            sent = mgr.hit()
        elif verb == "stand":
            sent = mgr.stand()
        elif verb == "double":
            sent = mgr.double()
        elif verb == "new":
            mgr.new_round()
        elif verb == "help":
            print(_help_line(mgr.state))
        else:
            print(f"Unknown command: {parts[0]} ({_help_line(mgr.state)})")
    except (InvalidAction, ValueError) as exc:
        print(f"[ERROR] {exc}")
    if sent is False:
        print("[INFO] Dealer is not ready for input yet, try again in a moment.")
    return True


# ----------------------------- main -------------------------------


def main() -> None:  # pragma: no cover
    """Interactive CLI client."""

    parser = argparse.ArgumentParser(description="Blackjack dealer client")
    parser.add_argument("--host", default=_cfg.DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=_cfg.DEFAULT_PORT)
    parser.add_argument("--user", help="Log in immediately as this user")
    parser.add_argument("--password", default=os.getenv("BJ_PASSWORD"), help="Password for --user")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (stackable)",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only print status messages",
    )
    args = parser.parse_args()

    debug = args.debug or _cfg.DEBUG
    logging.basicConfig(
        level=logging.DEBUG if debug else (logging.INFO if args.verbose else logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    global _VERBOSE_LEVEL  # noqa: PLW0603
    _VERBOSE_LEVEL = -1 if args.quiet else args.verbose

    mgr = ConnectionManager((args.host, args.port), on_update=_print_table)
    print(_help_line(mgr.state))
    if args.user:
        password = args.password or getpass.getpass("Password: ")
        mgr.login(args.user, password)

    try:
        while True:
            _prompt()
            user_input = sys.stdin.readline()
            if not user_input:
                break
            if not handle_input(mgr, user_input):
                logger.info("Exiting client per user request.")
                break
    except KeyboardInterrupt:
        logger.info("Client exiting")
    finally:
        mgr.logout()


if __name__ == "__main__":  # pragma: no cover
    main()
