"""Game state for one session and the pure reducer that advances it.

Two kinds of transitions live here:

* :func:`reduce` applies an event received from the dealer.
* ``place_bet`` / ``hit`` / ``stand`` / ``double_down`` / ``new_round`` are
  optimistic local updates applied when the user issues a command; the next
  authoritative line from the dealer overwrites whatever they guessed.

All values are frozen dataclasses, so a snapshot handed to the renderer can
never be mutated behind the engine's back.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import Tuple

from . import config as _cfg
from .events import (
    Acknowledged,
    DealerBlackjack,
    DealerRevealed,
    ErrorMessage,
    HandUpdated,
    InitialDeal,
    LoginAccepted,
    PlayerBlackjack,
    PlayerLose,
    PlayerWin,
    ProtocolEvent,
    Push,
    PushBothBlackjack,
    Unrecognized,
)

logger = logging.getLogger(__name__)


class Round(enum.Enum):
    LOGIN = "LOGIN"
    BETTING = "BETTING"
    IN_ROUND = "IN_ROUND"
    ROUND_OVER = "ROUND_OVER"


class InvalidAction(Exception):
    """Raised when a local action is not allowed in the current state."""


@dataclass(frozen=True)
class PlayerState:
    balance: int = _cfg.STARTING_BALANCE
    bet: int = 0
    cards: Tuple[str, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class DealerState:
    cards: Tuple[str, ...] = ()
    total: int = 0


@dataclass(frozen=True)
class GameState:
    round: Round = Round.LOGIN
    player: PlayerState = PlayerState()
    dealer: DealerState = DealerState()
    message: str = ""


OUTCOME_MESSAGES = {
    PlayerBlackjack: "Blackjack! You win.",
    DealerBlackjack: "Dealer has blackjack. You lose.",
    PushBothBlackjack: "Both have blackjack. Push.",
    Push: "Push. Your bet is returned.",
    PlayerWin: "You win!",
    PlayerLose: "You lose.",
}

_FACE_VALUES = {"J": 10, "Q": 10, "K": 10, "A": 11}


def card_value(card: str) -> int:
    """Blackjack value of a card token such as ``"10♠"`` or ``"K♦"``.

    Aces always count 11; the dealer's own totals win whenever it sends one.
    Unknown ranks count 0.
    """
    token = (card or "").strip()
    if token.startswith("10"):
        return 10
    rank = token[:1]
    if rank.isdigit():
        return int(rank) if rank != "1" else 0
    return _FACE_VALUES.get(rank, 0)


def hand_value(cards: Tuple[str, ...]) -> int:
    return sum(card_value(c) for c in cards)


# ---------------------------------------------------------------------------
# Received events
# ---------------------------------------------------------------------------


def reduce(state: GameState, event: ProtocolEvent) -> GameState:  # noqa: C901
    """Return the state that follows *state* once *event* has been received."""
    if isinstance(event, LoginAccepted):
        return GameState(
            round=Round.BETTING,
            player=PlayerState(balance=event.balance),
            dealer=DealerState(),
            message="Logged in! Place your bet.",
        )
    if isinstance(event, InitialDeal):
        up = (event.dealer_up_card,) if event.dealer_up_card else ()
        return replace(
            state,
            round=Round.IN_ROUND,
            player=replace(
                state.player,
                balance=event.balance,
                cards=event.player_cards,
                total=event.player_total,
            ),
            dealer=DealerState(cards=up, total=hand_value(up)),
            message="Your move!",
        )
    if isinstance(event, HandUpdated):
        return replace(
            state,
            player=replace(state.player, cards=event.player_cards, total=event.player_total),
        )
    if isinstance(event, DealerRevealed):
        return replace(state, dealer=DealerState(cards=event.dealer_cards, total=event.dealer_total))
    if type(event) in OUTCOME_MESSAGES:
        return replace(state, round=Round.ROUND_OVER, message=OUTCOME_MESSAGES[type(event)])
    if isinstance(event, ErrorMessage):
        if state.round is Round.LOGIN:
            return replace(state, message=event.text)
        # The optimistic debit is left in place; the next balance report fixes it.
        return replace(state, round=Round.BETTING, message=event.text)
    if isinstance(event, (Acknowledged, Unrecognized)):
        return state
    logger.warning("reduce(): unexpected event %r", event)
    return state


# ---------------------------------------------------------------------------
# Optimistic local actions
# ---------------------------------------------------------------------------


def _require(state: GameState, expected: Round, action: str) -> None:
    if state.round is not expected:
        raise InvalidAction(f"{action} not allowed during {state.round.value}")


def place_bet(state: GameState, amount: int) -> GameState:
    _require(state, Round.BETTING, "BET")
    if amount <= 0:
        raise InvalidAction("Bet must be positive")
    if amount > state.player.balance:
        raise InvalidAction(f"Insufficient balance for a bet of {amount}")
    return replace(
        state,
        round=Round.IN_ROUND,
        player=PlayerState(balance=state.player.balance - amount, bet=amount),
        dealer=DealerState(),
        message="Dealing cards...",
    )


def hit(state: GameState) -> GameState:
    _require(state, Round.IN_ROUND, "HIT")
    return replace(state, message="Dealing a card...")


def stand(state: GameState) -> GameState:
    _require(state, Round.IN_ROUND, "STAND")
    return replace(state, message="Standing. Dealer reveals...")


def double_down(state: GameState) -> GameState:
    _require(state, Round.IN_ROUND, "DOUBLE")
    p = state.player
    if p.balance < p.bet:
        raise InvalidAction("Insufficient balance to double")
    return replace(
        state,
        player=replace(p, balance=p.balance - p.bet, bet=p.bet * 2),
        message="Doubling down!",
    )


def new_round(state: GameState) -> GameState:
    _require(state, Round.ROUND_OVER, "NEW ROUND")
    return GameState(
        round=Round.BETTING,
        player=PlayerState(balance=state.player.balance),
        dealer=DealerState(),
        message="Place your bet.",
    )
