"""Typed protocol events produced by the message parser.

Every line received from the dealer maps to exactly one of the classes below,
so the lifecycle manager and the reducer can dispatch on type instead of
re-reading free-text strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union


@dataclass(frozen=True, slots=True)
class LoginAccepted:
    username: str
    balance: int


@dataclass(frozen=True, slots=True)
class InitialDeal:
    """First two player cards plus the dealer's up-card."""

    balance: int
    dealer_up_card: str
    player_total: int
    player_cards: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class HandUpdated:
    """Full player hand after HIT/DOUBLE (replaces, never appends)."""

    player_total: int
    player_cards: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Acknowledged:
    text: str


@dataclass(frozen=True, slots=True)
class PlayerBlackjack:
    pass


@dataclass(frozen=True, slots=True)
class DealerBlackjack:
    pass


@dataclass(frozen=True, slots=True)
class PushBothBlackjack:
    pass


@dataclass(frozen=True, slots=True)
class Push:
    pass


@dataclass(frozen=True, slots=True)
class PlayerWin:
    pass


@dataclass(frozen=True, slots=True)
class PlayerLose:
    pass


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    text: str


@dataclass(frozen=True, slots=True)
class DealerRevealed:
    dealer_total: int
    dealer_cards: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Unrecognized:
    text: str


ProtocolEvent = Union[
    LoginAccepted,
    InitialDeal,
    HandUpdated,
    Acknowledged,
    PlayerBlackjack,
    DealerBlackjack,
    PushBothBlackjack,
    Push,
    PlayerWin,
    PlayerLose,
    ErrorMessage,
    DealerRevealed,
    Unrecognized,
]
