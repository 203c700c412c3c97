"""Classify dealer lines into typed protocol events.

The dealer speaks a loose text protocol, e.g.::

    OK user:alice balance:100
    OK balance:75 dealer:K♦ you:17 10♠ 7♥
    OK you:21 10♠ 7♥ 4♣
    DEALER 18 K♦ 8♠
    LOSE
    ERROR Insufficient balance

Rules are tried in order and the first match wins, so every prefix that
overlaps a shorter one (``DEALER BLACKJACK`` vs ``DEALER <n>``,
``PUSH BOTH BLACKJACK`` vs ``PUSH``) sits above it in ``_RULES``.
"""

from __future__ import annotations

import re
from typing import Callable, Pattern, Tuple

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

# Rank followed by an optional suit glyph (or its ASCII letter), e.g. "10♠", "K♦", "AS".
CARD = r"(?:10|[2-9JQKA])(?:[♠♥♦♣♤♡♢♧]\ufe0f?|[SHDC])?(?=\s|$)"
_CARDS_ANY = rf"(?P<cards>(?:\s+{CARD})*)"
_CARDS_SOME = rf"(?P<cards>(?:\s+{CARD})+)"


def _int(text: str | None) -> int:
    try:
        return int(text) if text else 0
    except ValueError:  # absurdly long digit runs
        return 0


def _cards(text: str | None) -> Tuple[str, ...]:
    return tuple(text.split()) if text else ()


def _login(m: re.Match) -> ProtocolEvent:
    return LoginAccepted(username=m.group("user"), balance=_int(m.group("balance")))


def _initial_deal(m: re.Match) -> ProtocolEvent:
    return InitialDeal(
        balance=_int(m.group("balance")),
        dealer_up_card=m.group("up"),
        player_total=_int(m.group("total")),
        player_cards=_cards(m.group("cards")),
    )


def _hand(m: re.Match) -> ProtocolEvent:
    return HandUpdated(player_total=_int(m.group("total")), player_cards=_cards(m.group("cards")))


def _dealer(m: re.Match) -> ProtocolEvent:
    return DealerRevealed(dealer_total=_int(m.group("total")), dealer_cards=_cards(m.group("cards")))


_RULES: Tuple[Tuple[Pattern[str], Callable[[re.Match], ProtocolEvent]], ...] = (
    (re.compile(r"^OK\s+user:(?P<user>\S*)(?:.*?\bbalance:(?P<balance>\d+))?"), _login),
    (
        re.compile(r"^OK\s+balance:(?P<balance>\d*)\s+dealer:(?P<up>\S*)\s+you:(?P<total>\d*)" + _CARDS_ANY),
        _initial_deal,
    ),
    (re.compile(r"^OK\b.*?\byou:(?P<total>\d*)" + _CARDS_SOME), _hand),
    (re.compile(r"^OK\b"), lambda m: Acknowledged(text=m.string)),
    (re.compile(r"^BLACKJACK\b"), lambda m: PlayerBlackjack()),
    (re.compile(r"^DEALER\s+BLACKJACK\b"), lambda m: DealerBlackjack()),
    (re.compile(r"^PUSH\s+BOTH\s+BLACKJACK\b"), lambda m: PushBothBlackjack()),
    (re.compile(r"^PUSH\b"), lambda m: Push()),
    (re.compile(r"^WIN\b"), lambda m: PlayerWin()),
    (re.compile(r"^LOSE\b"), lambda m: PlayerLose()),
    (re.compile(r"^ERROR\b"), lambda m: ErrorMessage(text=m.string)),
    (re.compile(r"^DEALER\s+(?P<total>\d+)" + _CARDS_ANY), _dealer),
)


def is_ready_signal(line: str) -> bool:
    """Return True if *line* carries the dealer's ready-for-input marker."""
    return _cfg.READY_MARKER in (line or "")


def strip_ready_marker(line: str) -> str:
    return (line or "").replace(_cfg.READY_MARKER, "").strip()


def parse(line: str) -> ProtocolEvent:
    """Map one received line to exactly one protocol event.

    Never raises: anything that matches no rule comes back as
    :class:`Unrecognized` carrying the line text.
    """
    body = strip_ready_marker(line)
    for pattern, build in _RULES:
        m = pattern.match(body)
        if m:
            return build(m)
    return Unrecognized(text=body)


__all__ = ["parse", "is_ready_signal", "strip_ready_marker"]
